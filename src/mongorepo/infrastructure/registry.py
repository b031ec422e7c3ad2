"""Entity type registry: collection and connection naming.

Each entity type gets one EntityDescriptor in an append-only table.  A
descriptor records the names declared for the type and the index of its
parent descriptor (None when the type derives directly from Entity), so
inheritance-based defaults are resolved by walking indices rather than by
inspecting the class hierarchy at lookup time.

Naming rules:
  - collection: explicit argument → declared collection → type name
  - connection: explicit argument → declared connection → nearest
    ancestor's declared connection → name of the ancestor directly
    beneath Entity
All resolved names are lower-cased.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from mongorepo.domain.models import Entity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityDescriptor:
    name: str
    collection_name: str | None = None
    connection_name: str | None = None
    parent: int | None = None


class EntityRegistry:
    """Registration table mapping entity types to naming descriptors."""

    def __init__(self) -> None:
        self._descriptors: list[EntityDescriptor] = []
        self._index: dict[type[Entity], int] = {}
        self._lock = threading.Lock()

    def register(
        self,
        entity_type: type[Entity],
        *,
        collection: str | None = None,
        connection: str | None = None,
        parent: type[Entity] | None = None,
    ) -> EntityDescriptor:
        """Register entity_type, replacing any earlier registration.

        parent defaults to the direct base class when that base is itself
        registered (or is an Entity subclass other than Entity).
        """
        if not issubclass(entity_type, Entity):
            raise TypeError(f"{entity_type.__name__} does not derive from Entity")
        if parent is None:
            base = entity_type.__base__
            if base is not Entity and issubclass(base, Entity):
                parent = base
        with self._lock:
            parent_index = self._index_of(parent) if parent is not None else None
            descriptor = EntityDescriptor(
                name=entity_type.__name__,
                collection_name=collection,
                connection_name=connection,
                parent=parent_index,
            )
            if entity_type in self._index:
                self._descriptors[self._index[entity_type]] = descriptor
            else:
                self._index[entity_type] = len(self._descriptors)
                self._descriptors.append(descriptor)
        logger.debug("Registered %s as %s", entity_type.__name__, descriptor)
        return descriptor

    def entity(
        self,
        *,
        collection: str | None = None,
        connection: str | None = None,
    ):
        """Class decorator form of register()."""

        def decorator(entity_type: type[Entity]) -> type[Entity]:
            self.register(entity_type, collection=collection, connection=connection)
            return entity_type

        return decorator

    def describe(self, entity_type: type[Entity]) -> EntityDescriptor:
        """Return the descriptor for entity_type, registering it on first use."""
        with self._lock:
            index = self._index.get(entity_type)
            if index is not None:
                return self._descriptors[index]
        return self.register(entity_type)

    def collection_name(self, entity_type: type[Entity], explicit: str | None = None) -> str:
        if explicit:
            return explicit.lower()
        descriptor = self.describe(entity_type)
        return (descriptor.collection_name or descriptor.name).lower()

    def connection_name(self, entity_type: type[Entity], explicit: str | None = None) -> str:
        if explicit:
            return explicit.lower()
        descriptor = self.describe(entity_type)
        with self._lock:
            while descriptor.connection_name is None and descriptor.parent is not None:
                descriptor = self._descriptors[descriptor.parent]
        return (descriptor.connection_name or descriptor.name).lower()

    def _index_of(self, entity_type: type[Entity]) -> int:
        # Caller holds the lock.
        index = self._index.get(entity_type)
        if index is not None:
            return index
        grandparent = None
        base = entity_type.__base__
        if base is not Entity and issubclass(base, Entity):
            grandparent = self._index_of(base)
        self._index[entity_type] = len(self._descriptors)
        self._descriptors.append(EntityDescriptor(name=entity_type.__name__, parent=grandparent))
        return self._index[entity_type]


registry = EntityRegistry()
