"""
Infrastructure package for the query benchmark.

`DataAccess` implementations: MongoDB through pymongo (with a managed,
shared client) and a deterministic in-memory store. Keep this layer focused
on I/O and resource management, decoupled from engine and runner logic.
"""

from querybench.infrastructure.db_factory import ClientManager, MongoDataAccess, get_data_access
from querybench.infrastructure.memory import InMemoryDataAccess

__all__ = [
    "ClientManager",
    "MongoDataAccess",
    "get_data_access",
    "InMemoryDataAccess",
]
