"""
Pytest configuration for the query benchmark.

Provides fixtures for:
- A small customer dataset (phone -> identity -> account) held in memory
- Settings override for integration tests
- MongoDB connection management for integration tests
"""

from __future__ import annotations

import copy
import os
from typing import Any, Dict, Generator, List

import pytest
from pymongo import MongoClient
from pymongo.database import Database

from querybench.config import Settings, get_settings
from querybench.infrastructure.memory import InMemoryDataAccess

CUSTOMER_DATASET: Dict[str, List[Dict[str, Any]]] = {
    "phone": [
        {
            "_id": "p1",
            "phoneKey": {"phoneNumber": "5550001", "customerNumber": 1001, "phoneNumberType": "MOBILE"},
        },
        {
            "_id": "p2",
            "phoneKey": {"phoneNumber": "5550002", "customerNumber": 1002, "phoneNumberType": "HOME"},
        },
        {
            "_id": "p3",
            "phoneKey": {"phoneNumber": "5550003", "customerNumber": 1003, "phoneNumberType": "WORK"},
        },
        # Shared household line: two customers on one number.
        {
            "_id": "p4",
            "phoneKey": {"phoneNumber": "5550009", "customerNumber": 1001, "phoneNumberType": "HOME"},
        },
        {
            "_id": "p5",
            "phoneKey": {"phoneNumber": "5550009", "customerNumber": 1002, "phoneNumberType": "HOME"},
        },
    ],
    "identity": [
        {
            "_id": {"customerNumber": 1001, "customerCompanyNumber": 1},
            "common": {"taxIdentificationNumber": "123-45-6789", "taxIdentificationNumberLast4": "6789"},
            "individual": {"fullName": "Ada Lovelace", "dateOfBirth": "1815-12-10"},
            "emails": [{"emailAddress": "ada@example.com"}, {"emailAddress": "countess@example.com"}],
        },
        {
            "_id": {"customerNumber": 1002, "customerCompanyNumber": 1},
            "common": {"taxIdentificationNumber": "987-65-4321", "taxIdentificationNumberLast4": "4321"},
            "individual": {"fullName": "Alan Turing", "dateOfBirth": "1912-06-23"},
            "emails": [{"emailAddress": "alan@example.com"}],
        },
        # Business entity: no individual.* fields.
        {
            "_id": {"customerNumber": 1003, "customerCompanyNumber": 1},
            "common": {"taxIdentificationNumber": "11-2223333", "taxIdentificationNumberLast4": "3333"},
            "business": {"name": "Analytical Engines Ltd"},
        },
    ],
    "account": [
        {
            "_id": "a1",
            "accountKey": {"accountNumber": "000011112222", "accountNumberLast4": "2222"},
            "accountHolders": [{"customerNumber": 1001}, {"customerNumber": 1002}],
        },
        {
            "_id": "a2",
            "accountKey": {"accountNumber": "000033334444", "accountNumberLast4": "4444"},
            "accountHolders": [{"customerNumber": 1002}],
        },
        {
            "_id": "a3",
            "accountKey": {"accountNumber": "000055556666", "accountNumberLast4": "6666"},
            "accountHolders": [{"customerNumber": 1003}],
        },
    ],
}


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None, None, None]:
    """Keep env tweaks from one test out of the cached settings of the next."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def customer_dataset() -> Dict[str, List[Dict[str, Any]]]:
    return copy.deepcopy(CUSTOMER_DATASET)


@pytest.fixture
def memory_access(customer_dataset: Dict[str, List[Dict[str, Any]]]) -> InMemoryDataAccess:
    return InMemoryDataAccess(customer_dataset)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        mongo_uri=os.getenv("MONGO_URI", "mongodb://localhost:27017"),
        mongo_database=os.getenv("MONGO_TEST_DATABASE", "querybench_test"),
        mongo_connect_timeout_ms=2_000,
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def mongo_available(test_settings: Settings) -> bool:
    """
    Check if MongoDB is reachable.

    Used to conditionally skip integration tests when no server is available.
    """
    client: MongoClient = MongoClient(test_settings.mongo_uri, serverSelectionTimeoutMS=2_000)
    try:
        client.admin.command("ping")
        return True
    except Exception:
        return False
    finally:
        client.close()


@pytest.fixture(scope="session")
def mongo_database(
    test_settings: Settings, mongo_available: bool
) -> Generator[Database, None, None]:
    """
    Provide a session-scoped test database seeded with the customer dataset.

    Skips tests if MongoDB is not available; drops the database afterwards.
    """
    if not mongo_available:
        pytest.skip("MongoDB not available for integration tests")

    client: MongoClient = MongoClient(test_settings.mongo_uri)
    database = client[test_settings.mongo_database]
    for name, documents in CUSTOMER_DATASET.items():
        database[name].drop()
        database[name].insert_many(copy.deepcopy(documents))
    try:
        yield database
    finally:
        client.drop_database(test_settings.mongo_database)
        client.close()
