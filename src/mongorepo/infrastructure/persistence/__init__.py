"""MongoDB persistence package.

Exports the repository implementation, the builder types, and the
get_repository() factory for wiring at the application boundary.
"""

from __future__ import annotations

import threading

from mongorepo.domain.models import Entity
from mongorepo.infrastructure.database import Settings

from .builders import FilterBuilder, ProjectionBuilder, SortBuilder, UpdateBuilder
from .repository import MongoRepository

_repositories: dict[type[Entity], MongoRepository] = {}
_repositories_lock = threading.Lock()


def get_repository(entity_type: type[Entity], settings: Settings | None = None) -> MongoRepository:
    """Return the process-wide repository for entity_type.

    The first call for a type builds the repository from settings (the
    module-level Settings when omitted); later calls return the same
    instance and ignore settings.

        people = get_repository(Person)
        person = people.get(person_id)
    """
    with _repositories_lock:
        repository = _repositories.get(entity_type)
        if repository is None:
            repository = MongoRepository(entity_type, settings=settings)
            _repositories[entity_type] = repository
        return repository


def clear_repositories() -> None:
    """Forget every repository built by get_repository()."""
    with _repositories_lock:
        _repositories.clear()


__all__ = [
    "MongoRepository",
    "FilterBuilder",
    "SortBuilder",
    "UpdateBuilder",
    "ProjectionBuilder",
    "get_repository",
    "clear_repositories",
]
