"""
Exception hierarchy for the bridge daemon.

Stage functions (config loading, fetching, decoding) raise the typed
exceptions below. The ingestion loop converts each of them into a
CycleOutcome in a single place; nothing outside ``main`` lets them escape.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from solbrid.src.models import CycleOutcome


class BridgeError(Exception):
    """Base class for all bridge daemon errors."""


class ConfigError(BridgeError):
    """Configuration could not be located, parsed, or validated."""


class FetchError(BridgeError):
    """HTTP request to the inverter failed (network, timeout, or status)."""


class BodyReadError(BridgeError):
    """The response arrived but reading its body failed."""


class DecodeError(BridgeError):
    """The XML document is malformed or does not have the expected shape."""


class FatalEscalation(BridgeError):
    """Consecutive cycle failures reached the configured maximum.

    Args:
        consecutive: Consecutive-error count at the moment of escalation.
        last_outcome: The failed outcome that crossed the threshold.
    """

    def __init__(self, consecutive: int, last_outcome: CycleOutcome) -> None:
        self.consecutive = consecutive
        self.last_outcome = last_outcome
        super().__init__(
            f"Too many errors ({consecutive}), stopping. "
            f"Last failure: {last_outcome.describe()}"
        )
