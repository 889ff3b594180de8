"""Event type constants published by the credentials manager."""

from __future__ import annotations


class EventType:
    """Namespace for event type string constants."""

    # Every read dispatched by one add_service() call has completed
    SERVICE_READY = "credentials.service_ready"
