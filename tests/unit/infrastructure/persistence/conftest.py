"""Shared fixtures: in-memory mongomock databases."""

import mongomock
import pytest


@pytest.fixture
def client():
    return mongomock.MongoClient()


@pytest.fixture
def database(client):
    return client["testdb"]
