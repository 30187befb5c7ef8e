"""Ingestion layer.

Adapters that turn registry change notifications (event bus messages and
periodic full scans) into device ids handed to the dispatcher.
"""

from twinop.ingestion.events import CloudEventEnvelope, EventSourceAdapter, decode_event
from twinop.ingestion.scanner import PeriodicScanner

__all__ = ["CloudEventEnvelope", "EventSourceAdapter", "PeriodicScanner", "decode_event"]
