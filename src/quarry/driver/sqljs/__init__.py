from .driver import SqljsDriver
from .query_runner import SqljsQueryRunner
from .storage import FileStorage, KeyValueStorage

__all__ = ["SqljsDriver", "SqljsQueryRunner", "FileStorage", "KeyValueStorage"]
