"""Test configuration for MongoDB persistence package."""

import pytest
from mongomock_motor import AsyncMongoMockClient

from userhub_persistence_mongo import MongoConnectionManager


@pytest.fixture
def mongo_connection():
    """Connection manager already holding a mongomock_motor client."""
    connection = MongoConnectionManager("mongodb://mock:27017", database="test_db")
    connection._client = AsyncMongoMockClient(default_database_name="test_db")
    yield connection
    connection._client = None
