"""Generic repository base interface.

Repository[T] is the root abstraction for document data access.  The
MongoDB implementation lives in mongorepo/infrastructure/persistence/ and is
obtained through get_repository() or constructed directly.

Design notes:
  - Every operation has a blocking form and an awaitable *_async form with
    identical semantics.
  - T is an Entity subclass; ids are ObjectId hex strings.
  - Filters, sorts and updates are store-native documents produced by the
    repository's builders (repo.filter, repo.sort, repo.updater).
  - Paging is 0-based: skip = page_index * size, limit = size.
  - Writes are single store calls; multi-entity replace is not atomic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any, Generic, TypeVar

from mongorepo.domain.models import Entity

T = TypeVar("T", bound=Entity)

Filter = Mapping[str, Any]
Update = Mapping[str, Mapping[str, Any]]
Target = str | Entity | Filter


class Repository(ABC, Generic[T]):
    """Abstract CRUD interface over one collection of entities."""

    # --- reads ---

    @abstractmethod
    def get(self, id: str) -> T | None:
        """Return the entity with the given id, or None if not found."""

    @abstractmethod
    def find(
        self,
        filter: Filter | None = None,
        page_index: int | None = None,
        size: int | None = None,
        order: str | None = None,
        descending: bool = True,
    ) -> list[T]:
        """Return matching entities, optionally paged and ordered.

        With paging and no order, results are ordered by id (newest first).
        """

    @abstractmethod
    def find_all(
        self,
        page_index: int | None = None,
        size: int | None = None,
        order: str | None = None,
        descending: bool = True,
    ) -> list[T]:
        """find() with the match-all filter."""

    @abstractmethod
    def first(self, filter: Filter | None = None, order: str = "id", descending: bool = False) -> T | None:
        """Return the first entity under the given ordering (default: oldest)."""

    @abstractmethod
    def last(self, filter: Filter | None = None, order: str = "id", descending: bool = False) -> T | None:
        """Equivalent to first(filter, order, not descending)."""

    @abstractmethod
    def count(self, filter: Filter | None = None) -> int:
        """Return the exact number of matching documents."""

    @abstractmethod
    def estimated_count(self) -> int:
        """Return the collection's metadata document count."""

    @abstractmethod
    def any(self, filter: Filter | None = None) -> bool:
        """Return True if at least one document matches."""

    # --- writes ---

    @abstractmethod
    def insert(self, entities: T | Iterable[T]) -> None:
        """Insert one or many new entities; existing ids are rejected."""

    @abstractmethod
    def replace(self, entities: T | Iterable[T]) -> bool:
        """Upsert one or many entities by id.

        The stored document becomes exactly the given entity, modified_on
        included: replacing with a freshly built entity clears the stamp
        left by an earlier update().
        """

    @abstractmethod
    def update(self, target: Target, *updates: Update) -> bool:
        """Apply updates to the target and stamp modified_on with server time."""

    @abstractmethod
    def update_field(self, target: Target, field: str, value: Any) -> bool:
        """Set a single field on the target; same stamping as update()."""

    @abstractmethod
    def delete(self, target: Target) -> bool:
        """Delete by id, entity, or filter.  Missing documents are not an error."""

    @abstractmethod
    def delete_all(self) -> bool:
        """Delete every document in the collection."""

    # --- async counterparts ---

    @abstractmethod
    async def get_async(self, id: str) -> T | None: ...

    @abstractmethod
    async def find_async(
        self,
        filter: Filter | None = None,
        page_index: int | None = None,
        size: int | None = None,
        order: str | None = None,
        descending: bool = True,
    ) -> list[T]: ...

    @abstractmethod
    async def find_all_async(
        self,
        page_index: int | None = None,
        size: int | None = None,
        order: str | None = None,
        descending: bool = True,
    ) -> list[T]: ...

    @abstractmethod
    async def first_async(
        self, filter: Filter | None = None, order: str = "id", descending: bool = False
    ) -> T | None: ...

    @abstractmethod
    async def last_async(
        self, filter: Filter | None = None, order: str = "id", descending: bool = False
    ) -> T | None: ...

    @abstractmethod
    async def count_async(self, filter: Filter | None = None) -> int: ...

    @abstractmethod
    async def estimated_count_async(self) -> int: ...

    @abstractmethod
    async def any_async(self, filter: Filter | None = None) -> bool: ...

    @abstractmethod
    async def insert_async(self, entities: T | Iterable[T]) -> None: ...

    @abstractmethod
    async def replace_async(self, entities: T | Iterable[T]) -> bool: ...

    @abstractmethod
    async def update_async(self, target: Target, *updates: Update) -> bool: ...

    @abstractmethod
    async def update_field_async(self, target: Target, field: str, value: Any) -> bool: ...

    @abstractmethod
    async def delete_async(self, target: Target) -> bool: ...

    @abstractmethod
    async def delete_all_async(self) -> bool: ...
