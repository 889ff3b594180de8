from credentials_manager.events.bus import EventBus, Subscription
from credentials_manager.events.types import EventType

__all__ = ["EventBus", "EventType", "Subscription"]
