"""Ingestion layer.

Adapters that fetch (polling) or receive (webhook) upstream telemetry,
normalize it into canonical readings, gate it, and hand accepted readings to
the ingestor for persistence and fan-out.
"""

__all__: list[str] = []
