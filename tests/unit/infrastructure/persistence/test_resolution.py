"""Tests for MongoRepository collection resolution and retry wiring."""

import asyncio
import threading
import time
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect, ConfigurationError, InvalidURI, OperationFailure

from mongorepo.domain.models import Entity
from mongorepo.infrastructure.database import Settings, close_clients
from mongorepo.infrastructure.persistence.repository import MongoRepository
from mongorepo.infrastructure.registry import EntityRegistry
from mongorepo.infrastructure.retry import ErrorKind, RetryPolicy


class Person(Entity):
    name: str = ""


class Employee(Person):
    title: str = ""


@pytest.fixture
def registry():
    return EntityRegistry()


@pytest.fixture(autouse=True)
def _fresh_clients():
    yield
    close_clients()


def _mock_database():
    database = MagicMock()
    database.get_collection.return_value = MagicMock()
    return database


# --- collection naming ---

def test_collection_name_defaults_to_type_name(database, registry):
    repo = MongoRepository(Person, database=database, registry=registry)
    assert repo.collection_name == "person"
    assert repo.collection.name == "person"


def test_explicit_collection_name_is_lowercased(database, registry):
    repo = MongoRepository(Person, database=database, collection_name="Staff", registry=registry)
    assert repo.collection.name == "staff"


def test_declared_collection_name(database, registry):
    registry.register(Employee, collection="workers")
    repo = MongoRepository(Employee, database=database, registry=registry)
    assert repo.collection_name == "workers"


# --- sources ---

def test_client_and_database_name_source(client, registry):
    repo = MongoRepository(Person, client=client, database_name="crm", registry=registry)
    assert repo.collection.database.name == "crm"


def test_url_source_uses_url_database(registry):
    repo = MongoRepository(Person, url="mongodb://localhost:27017/crm", registry=registry)
    assert repo.collection.database.name == "crm"
    assert repo.collection.name == "person"


def test_settings_source_uses_connection_name(registry):
    settings = Settings(connection_strings={"person": "mongodb://localhost:27017/hr"})
    repo = MongoRepository(Employee, settings=settings, registry=registry)
    assert repo.collection.database.name == "hr"
    assert repo.collection.name == "employee"


def test_settings_source_explicit_connection_name(registry):
    settings = Settings(connection_strings={"archive": "mongodb://localhost:27017/old"})
    repo = MongoRepository(Person, settings=settings, connection_name="Archive", registry=registry)
    assert repo.collection.database.name == "old"


def test_retry_policy_built_from_settings(database, registry):
    settings = Settings(retry_attempts=5, transient_errors=frozenset({ErrorKind.TIMEOUT}))
    repo = MongoRepository(Person, database=database, settings=settings, registry=registry)
    assert repo.retry_policy == RetryPolicy(attempts=5, transient=frozenset({ErrorKind.TIMEOUT}))


def test_explicit_retry_policy_wins(database, registry):
    policy = RetryPolicy(attempts=1)
    repo = MongoRepository(Person, database=database, retry_policy=policy, registry=registry)
    assert repo.retry_policy is policy


# --- lazy resolution ---

def test_collection_not_resolved_at_construction(registry):
    database = _mock_database()
    MongoRepository(Person, database=database, registry=registry)
    database.get_collection.assert_not_called()


def test_collection_resolved_once_and_cached(registry):
    database = _mock_database()
    repo = MongoRepository(Person, database=database, registry=registry)
    assert repo.collection is repo.collection
    database.get_collection.assert_called_once_with("person")


def test_concurrent_first_use_resolves_once(registry):
    database = MagicMock()

    def slow_collection(name):
        time.sleep(0.05)
        return MagicMock(name=name)

    database.get_collection.side_effect = slow_collection
    repo = MongoRepository(Person, database=database, registry=registry)
    handles = []
    threads = [threading.Thread(target=lambda: handles.append(repo.collection)) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(handles) == 8
    assert all(handle is handles[0] for handle in handles)
    assert database.get_collection.call_count == 1


async def test_concurrent_async_first_use_converges(registry):
    database = _mock_database()
    database.get_collection.return_value.count_documents.return_value = 0
    repo = MongoRepository(Person, database=database, registry=registry)
    await asyncio.gather(*(repo.count_async() for _ in range(5)))
    assert database.get_collection.call_count == 1


# --- configuration errors ---

def test_malformed_url_fails_at_first_use(registry):
    repo = MongoRepository(Person, url="bogus://localhost/crm", registry=registry)
    with pytest.raises(InvalidURI):
        repo.get(str(ObjectId()))
    with pytest.raises(InvalidURI):
        repo.count()


def test_missing_connection_string_fails_at_first_use(registry):
    repo = MongoRepository(Person, settings=Settings(), registry=registry)
    with pytest.raises(ConfigurationError):
        repo.count()


def test_url_without_database_fails_at_first_use(registry):
    repo = MongoRepository(Person, url="mongodb://localhost:27017", registry=registry)
    with pytest.raises(ConfigurationError):
        repo.count()


# --- retry wiring (blocking API) ---

def _transient() -> AutoReconnect:
    exc = AutoReconnect("socket closed")
    exc.__cause__ = OSError("socket closed")
    return exc


def test_find_retries_and_returns_success(registry):
    database = _mock_database()
    collection = database.get_collection.return_value
    oid = ObjectId()
    collection.find.side_effect = [_transient(), _transient(), [{"_id": oid, "name": "Ada"}]]
    repo = MongoRepository(Person, database=database, registry=registry)
    found = repo.find({"name": "Ada"})
    assert [p.id for p in found] == [str(oid)]
    assert collection.find.call_count == 3


def test_update_surfaces_final_transient_error(registry):
    database = _mock_database()
    collection = database.get_collection.return_value
    errors = [_transient(), _transient(), _transient()]
    collection.update_many.side_effect = errors
    repo = MongoRepository(Person, database=database, registry=registry)
    with pytest.raises(AutoReconnect) as info:
        repo.update(str(ObjectId()), repo.updater.set("name", "x"))
    assert info.value is errors[-1]


def test_query_errors_propagate_immediately(registry):
    database = _mock_database()
    collection = database.get_collection.return_value
    collection.count_documents.side_effect = OperationFailure("unknown operator: $bogus")
    repo = MongoRepository(Person, database=database, registry=registry)
    with pytest.raises(OperationFailure):
        repo.count({"name": {"$bogus": 1}})
    assert collection.count_documents.call_count == 1


def test_update_sends_combined_update_with_timestamp(registry):
    database = _mock_database()
    collection = database.get_collection.return_value
    repo = MongoRepository(Person, database=database, registry=registry)
    oid = ObjectId()
    repo.update(str(oid), repo.updater.set("name", "a"), repo.updater.set("title", "b"))
    collection.update_many.assert_called_once_with(
        {"_id": oid},
        {"$set": {"name": "a", "title": "b"}, "$currentDate": {"_m": True}},
    )


def test_replace_upserts_by_id(registry):
    database = _mock_database()
    collection = database.get_collection.return_value
    repo = MongoRepository(Person, database=database, registry=registry)
    person = Person(name="Ada")
    repo.replace(person)
    collection.replace_one.assert_called_once_with(
        {"_id": ObjectId(person.id)}, person.to_document(), upsert=True
    )
