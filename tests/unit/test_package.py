"""Tests for mongorepo/__init__.py: package exports."""

import logging

import mongorepo
from mongorepo import (
    ContentEntity,
    Entity,
    EntityRegistry,
    ErrorKind,
    MongoRepository,
    Repository,
    RetryPolicy,
    Settings,
    get_repository,
    registry,
)


def test_package_exports_ten_names():
    assert len(mongorepo.__all__) == 10


def test_mongo_repository_implements_repository():
    assert issubclass(MongoRepository, Repository)


def test_default_registry_is_entity_registry():
    assert isinstance(registry, EntityRegistry)


def test_entity_importable_from_package():
    assert Entity.__name__ == "Entity"


def test_error_kinds_are_strings():
    assert ErrorKind.TIMEOUT == "timeout"


def test_public_callables():
    assert callable(get_repository)
    assert RetryPolicy().attempts == 3
    assert Settings().retry_attempts == 3


def test_package_logger_has_null_handler():
    handlers = logging.getLogger("mongorepo").handlers
    assert any(isinstance(h, logging.NullHandler) for h in handlers)


def test_content_entity_is_an_entity():
    assert issubclass(ContentEntity, Entity)
