"""Dispatch of lifecycle events to the data source's subscribers."""

from typing import TYPE_CHECKING, Any, Iterable, Optional

from quarry.logging import get_logger
from quarry.subscriber.events import BroadcastEvent, SubscriberEvent

if TYPE_CHECKING:
    from quarry.driver.query_runner import QueryRunner
    from quarry.metadata import EntityMetadata

logger = get_logger(__name__)


class Broadcaster:
    """Calls subscriber hooks on behalf of one query runner.

    Entity events are delivered only to subscribers whose ``listen_to()``
    is ``None`` or matches the metadata target (or its name). Transaction
    events go to every subscriber.
    """

    def __init__(self, query_runner: "QueryRunner"):
        self.query_runner = query_runner

    def broadcast(
        self,
        event: BroadcastEvent,
        metadata: Optional["EntityMetadata"] = None,
        entities: Optional[Iterable[Any]] = None,
    ) -> None:
        """Deliver ``event`` once per entity (or once when there are none).

        Args:
            event: Lifecycle point being announced
            metadata: Metadata of the statement's main alias, if any
            entities: Value sets or ids the statement acts on
        """
        data_source = self.query_runner.data_source
        subscribers = list(getattr(data_source, "subscribers", None) or [])
        if not subscribers:
            return

        payloads = list(entities) if entities is not None else []
        if not payloads:
            payloads = [None]

        for subscriber in subscribers:
            if event.is_entity_event and not self._is_allowed(subscriber, metadata):
                continue
            handler = getattr(subscriber, event.value, None)
            if handler is None:
                continue
            for entity in payloads:
                logger.debug(
                    "Broadcasting subscriber event",
                    extra={"event": event.value, "subscriber": type(subscriber).__name__},
                )
                handler(SubscriberEvent(
                    data_source=data_source,
                    query_runner=self.query_runner,
                    metadata=metadata,
                    entity=entity,
                ))

    @staticmethod
    def _is_allowed(subscriber: Any, metadata: Optional["EntityMetadata"]) -> bool:
        listen_to = getattr(subscriber, "listen_to", None)
        target = listen_to() if callable(listen_to) else None
        if target is None:
            return True
        if metadata is None:
            return False
        return target is metadata.target or target == metadata.name
