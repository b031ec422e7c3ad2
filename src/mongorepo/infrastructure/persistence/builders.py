"""Filter, sort, update, and projection builders.

The builders emit plain pymongo documents.  They interpret nothing: their
only job is to translate model field names to stored names (id → _id,
modified_on → _m), convert id values to ObjectId, and merge fragments.
Query semantics belong to the server.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Generic, TypeVar

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING

from mongorepo.domain.models import ID_FIELD, Entity

T = TypeVar("T", bound=Entity)

FilterDocument = dict[str, Any]
SortSpec = list[tuple[str, int]]
UpdateDocument = dict[str, dict[str, Any]]
ProjectionDocument = dict[str, int]


class _FieldMapper(Generic[T]):
    def __init__(self, entity_type: type[T]) -> None:
        self.entity_type = entity_type

    def _path(self, field: str) -> str:
        return self.entity_type.stored_name(field)

    def _value(self, path: str, value: Any) -> Any:
        if path == ID_FIELD and isinstance(value, str):
            return ObjectId(value)
        return value


class FilterBuilder(_FieldMapper[T]):
    """Query filters.  and_() drops empty fragments."""

    @property
    def empty(self) -> FilterDocument:
        return {}

    def eq(self, field: str, value: Any) -> FilterDocument:
        path = self._path(field)
        return {path: self._value(path, value)}

    def ne(self, field: str, value: Any) -> FilterDocument:
        return self._op("$ne", field, value)

    def gt(self, field: str, value: Any) -> FilterDocument:
        return self._op("$gt", field, value)

    def gte(self, field: str, value: Any) -> FilterDocument:
        return self._op("$gte", field, value)

    def lt(self, field: str, value: Any) -> FilterDocument:
        return self._op("$lt", field, value)

    def lte(self, field: str, value: Any) -> FilterDocument:
        return self._op("$lte", field, value)

    def in_(self, field: str, values: Iterable[Any]) -> FilterDocument:
        path = self._path(field)
        return {path: {"$in": [self._value(path, v) for v in values]}}

    def nin(self, field: str, values: Iterable[Any]) -> FilterDocument:
        path = self._path(field)
        return {path: {"$nin": [self._value(path, v) for v in values]}}

    def exists(self, field: str, exists: bool = True) -> FilterDocument:
        return {self._path(field): {"$exists": exists}}

    def regex(self, field: str, pattern: str, options: str = "") -> FilterDocument:
        clause: dict[str, Any] = {"$regex": pattern}
        if options:
            clause["$options"] = options
        return {self._path(field): clause}

    def and_(self, *filters: Mapping[str, Any]) -> FilterDocument:
        parts = [dict(f) for f in filters if f]
        if not parts:
            return {}
        if len(parts) == 1:
            return parts[0]
        return {"$and": parts}

    def or_(self, *filters: Mapping[str, Any]) -> FilterDocument:
        return {"$or": [dict(f) for f in filters]}

    def _op(self, operator: str, field: str, value: Any) -> FilterDocument:
        path = self._path(field)
        return {path: {operator: self._value(path, value)}}


class SortBuilder(_FieldMapper[T]):
    def ascending(self, field: str) -> SortSpec:
        return [(self._path(field), ASCENDING)]

    def descending(self, field: str) -> SortSpec:
        return [(self._path(field), DESCENDING)]

    def by(self, field: str, descending: bool) -> SortSpec:
        return self.descending(field) if descending else self.ascending(field)

    def combine(self, *sorts: SortSpec) -> SortSpec:
        return [key for sort in sorts for key in sort]


class UpdateBuilder(_FieldMapper[T]):
    """Update documents.  combine() merges per operator; later fields win."""

    def set(self, field: str, value: Any) -> UpdateDocument:
        path = self._path(field)
        return {"$set": {path: self._value(path, value)}}

    def unset(self, field: str) -> UpdateDocument:
        return {"$unset": {self._path(field): ""}}

    def inc(self, field: str, amount: int | float = 1) -> UpdateDocument:
        return {"$inc": {self._path(field): amount}}

    def push(self, field: str, value: Any) -> UpdateDocument:
        return {"$push": {self._path(field): value}}

    def current_date(self, field: str) -> UpdateDocument:
        return {"$currentDate": {self._path(field): True}}

    def combine(self, *updates: Mapping[str, Mapping[str, Any]]) -> UpdateDocument:
        combined: UpdateDocument = {}
        for update in updates:
            for operator, fields in update.items():
                combined.setdefault(operator, {}).update(fields)
        return combined


class ProjectionBuilder(_FieldMapper[T]):
    def include(self, *fields: str) -> ProjectionDocument:
        return {self._path(f): 1 for f in fields}

    def exclude(self, *fields: str) -> ProjectionDocument:
        return {self._path(f): 0 for f in fields}

    def combine(self, *projections: Mapping[str, int]) -> ProjectionDocument:
        combined: ProjectionDocument = {}
        for projection in projections:
            combined.update(projection)
        return combined
