"""
Bridge daemon package for SolBrid-XML-to-MQTT telemetry pipeline.

Polls the XML status endpoint of a Kontron Solbrid inverter, decodes the
measurements, and fans them out to an MQTT broker and/or an InfluxDB bucket.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-001)

TODO:
- None
"""
