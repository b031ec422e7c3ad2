"""pymongo implementation of Repository."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from functools import partial
from typing import Any

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from mongorepo.domain.models import Entity
from mongorepo.domain.repositories.base import Filter, Repository, T, Target, Update
from mongorepo.infrastructure import database as db
from mongorepo.infrastructure.persistence.builders import (
    FilterBuilder,
    FilterDocument,
    ProjectionBuilder,
    SortBuilder,
    UpdateBuilder,
)
from mongorepo.infrastructure.registry import EntityRegistry
from mongorepo.infrastructure.registry import registry as default_registry
from mongorepo.infrastructure.retry import RetryPolicy

logger = logging.getLogger(__name__)


class MongoRepository(Repository[T]):
    """Repository over a single MongoDB collection.

    The backing database is chosen from the first source supplied, in
    order: database, client + database_name, url, or the connection string
    configured in settings for the entity's connection name.  The collection
    handle is resolved on first use and kept for the repository's lifetime;
    malformed or missing configuration surfaces then, not at construction.

    Instances are safe to share between threads and tasks.
    """

    def __init__(
        self,
        entity_type: type[T],
        *,
        url: str | None = None,
        client: MongoClient | None = None,
        database_name: str | None = None,
        database: Database | None = None,
        collection_name: str | None = None,
        connection_name: str | None = None,
        settings: db.Settings | None = None,
        registry: EntityRegistry | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.entity_type = entity_type
        self._settings = settings or db.settings
        self._registry = registry or default_registry
        self.collection_name = self._registry.collection_name(entity_type, collection_name)
        self._open_database = self._database_source(
            url, client, database_name, database, connection_name
        )
        self._collection: Collection | None = None
        self._lock = threading.Lock()
        self._retry = retry_policy or RetryPolicy.from_settings(self._settings)

        self.filter = FilterBuilder(entity_type)
        self.sort = SortBuilder(entity_type)
        self.updater = UpdateBuilder(entity_type)
        self.project = ProjectionBuilder(entity_type)

    def _database_source(
        self,
        url: str | None,
        client: MongoClient | None,
        database_name: str | None,
        database: Database | None,
        connection_name: str | None,
    ) -> Callable[[], Database]:
        if database is not None:
            return lambda: database
        if client is not None:
            return lambda: client.get_database(database_name)
        if url is not None:
            return partial(db.get_database_from_url, url)
        name = self._registry.connection_name(self.entity_type, connection_name)
        return lambda: db.get_database_from_url(self._settings.connection_string(name))

    @property
    def collection(self) -> Collection:
        """The underlying pymongo collection, resolved on first access."""
        collection = self._collection
        if collection is None:
            with self._lock:
                if self._collection is None:
                    self._collection = self._open_database().get_collection(self.collection_name)
                    logger.info(
                        "Resolved collection %s.%s for %s",
                        self._collection.database.name,
                        self.collection_name,
                        self.entity_type.__name__,
                    )
                collection = self._collection
        return collection

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    # --- helpers ---

    def _to_entity(self, document: Mapping[str, Any]) -> T:
        return self.entity_type.model_validate(document)

    def _target_filter(self, target: Target) -> FilterDocument:
        if isinstance(target, Entity):
            return self.filter.eq("id", target.id)
        if isinstance(target, str):
            return self.filter.eq("id", target)
        if isinstance(target, Mapping):
            return dict(target)
        raise TypeError(f"Cannot target documents with {type(target).__name__}")

    @staticmethod
    def _check_paging(page_index: int | None, size: int | None) -> None:
        if size is None:
            if page_index is not None:
                raise ValueError("page_index requires size")
            return
        if size <= 0:
            raise ValueError(f"size must be positive, got {size}")
        if page_index is not None and page_index < 0:
            raise ValueError(f"page_index must not be negative, got {page_index}")

    def _stamped(self, updates: tuple[Update, ...]) -> dict[str, dict[str, Any]]:
        return self.updater.combine(*updates, self.updater.current_date("modified_on"))

    # --- store calls (no retry) ---

    def _find_one(self, filter: FilterDocument) -> T | None:
        document = self.collection.find_one(filter)
        return self._to_entity(document) if document is not None else None

    def _find(
        self,
        filter: Filter | None,
        page_index: int | None,
        size: int | None,
        order: str | None,
        descending: bool,
    ) -> list[T]:
        cursor = self.collection.find(dict(filter or {}))
        if order is not None or size is not None:
            cursor = cursor.sort(self.sort.by(order or "id", descending))
        if size is not None:
            cursor = cursor.skip((page_index or 0) * size).limit(size)
        return [self._to_entity(document) for document in cursor]

    def _insert(self, entities: T | Iterable[T]) -> None:
        if isinstance(entities, Entity):
            self.collection.insert_one(entities.to_document())
            return
        documents = [entity.to_document() for entity in entities]
        if documents:
            self.collection.insert_many(documents)

    def _replace_one(self, entity: T) -> bool:
        result = self.collection.replace_one(
            self.filter.eq("id", entity.id), entity.to_document(), upsert=True
        )
        return result.acknowledged

    def _update(self, filter: FilterDocument, update: dict[str, dict[str, Any]]) -> bool:
        return self.collection.update_many(filter, update).acknowledged

    def _delete(self, filter: FilterDocument, many: bool) -> bool:
        if many:
            return self.collection.delete_many(filter).acknowledged
        return self.collection.delete_one(filter).acknowledged

    def _count(self, filter: Filter | None) -> int:
        return self.collection.count_documents(dict(filter or {}))

    def _estimated_count(self) -> int:
        return self.collection.estimated_document_count()

    # --- reads ---

    def get(self, id: str) -> T | None:
        return self._retry.execute(partial(self._find_one, self.filter.eq("id", id)))

    def find(
        self,
        filter: Filter | None = None,
        page_index: int | None = None,
        size: int | None = None,
        order: str | None = None,
        descending: bool = True,
    ) -> list[T]:
        self._check_paging(page_index, size)
        return self._retry.execute(
            partial(self._find, filter, page_index, size, order, descending)
        )

    def find_all(
        self,
        page_index: int | None = None,
        size: int | None = None,
        order: str | None = None,
        descending: bool = True,
    ) -> list[T]:
        return self.find(self.filter.empty, page_index, size, order, descending)

    def first(self, filter: Filter | None = None, order: str = "id", descending: bool = False) -> T | None:
        page = self.find(filter, 0, 1, order, descending)
        return page[0] if page else None

    def last(self, filter: Filter | None = None, order: str = "id", descending: bool = False) -> T | None:
        return self.first(filter, order, not descending)

    def count(self, filter: Filter | None = None) -> int:
        return self._retry.execute(partial(self._count, filter))

    def estimated_count(self) -> int:
        return self._retry.execute(self._estimated_count)

    def any(self, filter: Filter | None = None) -> bool:
        return self.first(filter) is not None

    # --- writes ---

    def insert(self, entities: T | Iterable[T]) -> None:
        if not isinstance(entities, Entity):
            entities = list(entities)
        self._retry.execute(partial(self._insert, entities))

    def replace(self, entities: T | Iterable[T]) -> bool:
        """Upsert by id, writing each entity's own modified_on (often None).

        Load the entity and modify it in place to keep its modified_on.
        """
        if isinstance(entities, Entity):
            return self._retry.execute(partial(self._replace_one, entities))
        # One write per entity; earlier writes stand if a later one fails.
        acknowledged = True
        for entity in entities:
            acknowledged = self._retry.execute(partial(self._replace_one, entity)) and acknowledged
        return acknowledged

    def update(self, target: Target, *updates: Update) -> bool:
        return self._retry.execute(
            partial(self._update, self._target_filter(target), self._stamped(updates))
        )

    def update_field(self, target: Target, field: str, value: Any) -> bool:
        """Set a single field on the target."""
        return self.update(target, self.updater.set(field, value))

    def delete(self, target: Target) -> bool:
        return self._retry.execute(
            partial(self._delete, self._target_filter(target), isinstance(target, Mapping))
        )

    def delete_all(self) -> bool:
        return self.delete(self.filter.empty)

    # --- async ---

    async def get_async(self, id: str) -> T | None:
        return await self._retry.execute_async(partial(self._find_one, self.filter.eq("id", id)))

    async def find_async(
        self,
        filter: Filter | None = None,
        page_index: int | None = None,
        size: int | None = None,
        order: str | None = None,
        descending: bool = True,
    ) -> list[T]:
        self._check_paging(page_index, size)
        return await self._retry.execute_async(
            partial(self._find, filter, page_index, size, order, descending)
        )

    async def find_all_async(
        self,
        page_index: int | None = None,
        size: int | None = None,
        order: str | None = None,
        descending: bool = True,
    ) -> list[T]:
        return await self.find_async(self.filter.empty, page_index, size, order, descending)

    async def first_async(
        self, filter: Filter | None = None, order: str = "id", descending: bool = False
    ) -> T | None:
        page = await self.find_async(filter, 0, 1, order, descending)
        return page[0] if page else None

    async def last_async(
        self, filter: Filter | None = None, order: str = "id", descending: bool = False
    ) -> T | None:
        return await self.first_async(filter, order, not descending)

    async def count_async(self, filter: Filter | None = None) -> int:
        return await self._retry.execute_async(partial(self._count, filter))

    async def estimated_count_async(self) -> int:
        return await self._retry.execute_async(self._estimated_count)

    async def any_async(self, filter: Filter | None = None) -> bool:
        return await self.first_async(filter) is not None

    async def insert_async(self, entities: T | Iterable[T]) -> None:
        if not isinstance(entities, Entity):
            entities = list(entities)
        await self._retry.execute_async(partial(self._insert, entities))

    async def replace_async(self, entities: T | Iterable[T]) -> bool:
        if isinstance(entities, Entity):
            return await self._retry.execute_async(partial(self._replace_one, entities))
        acknowledged = True
        for entity in entities:
            written = await self._retry.execute_async(partial(self._replace_one, entity))
            acknowledged = written and acknowledged
        return acknowledged

    async def update_async(self, target: Target, *updates: Update) -> bool:
        return await self._retry.execute_async(
            partial(self._update, self._target_filter(target), self._stamped(updates))
        )

    async def update_field_async(self, target: Target, field: str, value: Any) -> bool:
        return await self.update_async(target, self.updater.set(field, value))

    async def delete_async(self, target: Target) -> bool:
        return await self._retry.execute_async(
            partial(self._delete, self._target_filter(target), isinstance(target, Mapping))
        )

    async def delete_all_async(self) -> bool:
        return await self.delete_async(self.filter.empty)
