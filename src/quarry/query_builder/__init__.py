"""Fluent statement builders and the expression model they lower."""

from .base import QueryBuilder
from .brackets import Brackets, NotBrackets
from .delete import DeleteQueryBuilder
from .expression_map import Alias, ExpressionMap, WhereClause
from .insert import InsertQueryBuilder
from .result import DeleteResult, InsertResult, UpdateResult
from .select import SelectQueryBuilder
from .update import UpdateQueryBuilder

__all__ = [
    "Alias",
    "Brackets",
    "DeleteQueryBuilder",
    "DeleteResult",
    "ExpressionMap",
    "InsertQueryBuilder",
    "InsertResult",
    "NotBrackets",
    "QueryBuilder",
    "SelectQueryBuilder",
    "UpdateQueryBuilder",
    "UpdateResult",
    "WhereClause",
]
