"""
Remote persistence port consumed by the stores and the sync orchestrator.

Every call is implicitly scoped to the identity's current user. Without a
signed-in user, calls raise NotAuthenticatedError; any other failure is
raised as RemoteIOError.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List

ENTITIES = ("quotes", "machines", "materials", "shop", "subscription", "projects")

Record = Dict[str, Any]


def check_entity(entity: str) -> str:
    if entity not in ENTITIES:
        raise ValueError(f"Unknown entity '{entity}', expected one of {', '.join(ENTITIES)}")
    return entity


class DatabaseAdapter(ABC):
    """Save, load and delete JSON records per entity"""

    @abstractmethod
    async def save(self, entity: str, record: Record) -> None:
        """Insert or replace ``record`` (matched by its ``id``)"""
        pass

    @abstractmethod
    async def load_all(self, entity: str) -> List[Record]:
        pass

    @abstractmethod
    async def delete(self, entity: str, record_id: str) -> None:
        pass
