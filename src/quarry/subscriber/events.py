"""Events broadcast to entity subscribers."""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from quarry.data_source import DataSource
    from quarry.driver.query_runner import QueryRunner
    from quarry.metadata import EntityMetadata


class BroadcastEvent(str, Enum):
    """Lifecycle points a subscriber can hook into.

    Each value is also the name of the subscriber method that receives it.
    """

    BEFORE_INSERT = "before_insert"
    AFTER_INSERT = "after_insert"
    BEFORE_UPDATE = "before_update"
    AFTER_UPDATE = "after_update"
    BEFORE_REMOVE = "before_remove"
    AFTER_REMOVE = "after_remove"
    BEFORE_TRANSACTION_START = "before_transaction_start"
    AFTER_TRANSACTION_START = "after_transaction_start"
    BEFORE_TRANSACTION_COMMIT = "before_transaction_commit"
    AFTER_TRANSACTION_COMMIT = "after_transaction_commit"
    BEFORE_TRANSACTION_ROLLBACK = "before_transaction_rollback"
    AFTER_TRANSACTION_ROLLBACK = "after_transaction_rollback"

    @property
    def is_entity_event(self) -> bool:
        return "transaction" not in self.value


@dataclass(frozen=True)
class SubscriberEvent:
    """Payload handed to subscriber methods."""

    data_source: "DataSource"
    query_runner: "QueryRunner"
    metadata: Optional["EntityMetadata"] = None
    entity: Any = None
