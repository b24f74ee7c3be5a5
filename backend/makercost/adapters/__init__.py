from makercost.adapters.base import ENTITIES, DatabaseAdapter
from makercost.adapters.memory_adapter import InMemoryDatabaseAdapter
from makercost.adapters.sqlalchemy_adapter import SQLAlchemyDatabaseAdapter

__all__ = ["ENTITIES", "DatabaseAdapter", "InMemoryDatabaseAdapter", "SQLAlchemyDatabaseAdapter"]
