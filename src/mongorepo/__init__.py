"""Generic MongoDB repository for Pydantic entities."""

import logging

from mongorepo.domain.models import ContentEntity, Entity
from mongorepo.domain.repositories import Repository
from mongorepo.infrastructure.database import Settings
from mongorepo.infrastructure.persistence import MongoRepository, get_repository
from mongorepo.infrastructure.registry import EntityRegistry, registry
from mongorepo.infrastructure.retry import ErrorKind, RetryPolicy

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Entity",
    "ContentEntity",
    "Repository",
    "MongoRepository",
    "get_repository",
    "EntityRegistry",
    "registry",
    "ErrorKind",
    "RetryPolicy",
    "Settings",
]
