"""Entity subscribers and the broadcaster that notifies them."""

from .broadcaster import Broadcaster
from .entity_subscriber import EntitySubscriberInterface
from .events import BroadcastEvent, SubscriberEvent

__all__ = ["Broadcaster", "BroadcastEvent", "EntitySubscriberInterface", "SubscriberEvent"]
