"""Base class for entity subscribers."""

from typing import Any, Optional

from quarry.subscriber.events import SubscriberEvent


class EntitySubscriberInterface:
    """Receives lifecycle events from query runners.

    Override only the hooks you need. ``listen_to`` narrows entity events
    to one target; returning ``None`` receives events for every entity.
    Exceptions raised by a hook propagate to the statement that triggered it.

    Example:
        >>> class AuditSubscriber(EntitySubscriberInterface):
        ...     def listen_to(self):
        ...         return User
        ...     def after_remove(self, event):
        ...         audit_log.append(event.entity)
    """

    def listen_to(self) -> Optional[Any]:
        return None

    def before_insert(self, event: SubscriberEvent) -> None:
        pass

    def after_insert(self, event: SubscriberEvent) -> None:
        pass

    def before_update(self, event: SubscriberEvent) -> None:
        pass

    def after_update(self, event: SubscriberEvent) -> None:
        pass

    def before_remove(self, event: SubscriberEvent) -> None:
        pass

    def after_remove(self, event: SubscriberEvent) -> None:
        pass

    def before_transaction_start(self, event: SubscriberEvent) -> None:
        pass

    def after_transaction_start(self, event: SubscriberEvent) -> None:
        pass

    def before_transaction_commit(self, event: SubscriberEvent) -> None:
        pass

    def after_transaction_commit(self, event: SubscriberEvent) -> None:
        pass

    def before_transaction_rollback(self, event: SubscriberEvent) -> None:
        pass

    def after_transaction_rollback(self, event: SubscriberEvent) -> None:
        pass
