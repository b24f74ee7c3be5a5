from collections import defaultdict
from copy import deepcopy
from typing import Dict, List, Optional, Tuple
import asyncio
import logging

from makercost.adapters.base import DatabaseAdapter, Record, check_entity
from makercost.core.exceptions import NotAuthenticatedError, RemoteIOError
from makercost.core.identity import IdentityProvider

logger = logging.getLogger(__name__)


class InMemoryDatabaseAdapter(DatabaseAdapter):
    """
    Dict-backed adapter with the same contract as the SQL one.

    ``fail_with`` makes every call raise a RemoteIOError with that message and
    ``delay`` makes every call sleep first, to simulate a slow or broken backend.
    """

    def __init__(self, identity: IdentityProvider, delay: float = 0.0):
        self.identity = identity
        self.delay = delay
        self.fail_with: Optional[str] = None
        self.calls: List[Tuple[str, str, Optional[str]]] = []
        self._data: Dict[str, Dict[str, Dict[str, Record]]] = defaultdict(lambda: defaultdict(dict))

    def _user_id(self) -> str:
        user_id = self.identity.user_id
        if user_id is None:
            raise NotAuthenticatedError()
        return user_id

    async def _enter(self, operation: str, entity: str, record_id: Optional[str] = None) -> str:
        check_entity(entity)
        self.calls.append((operation, entity, record_id))
        user_id = self._user_id()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with:
            raise RemoteIOError(self.fail_with)
        return user_id

    async def save(self, entity: str, record: Record) -> None:
        user_id = await self._enter("save", entity, record.get("id"))
        self._data[user_id][entity][record["id"]] = deepcopy(record)

    async def load_all(self, entity: str) -> List[Record]:
        user_id = await self._enter("load_all", entity)
        return [deepcopy(record) for record in self._data[user_id][entity].values()]

    async def delete(self, entity: str, record_id: str) -> None:
        user_id = await self._enter("delete", entity, record_id)
        self._data[user_id][entity].pop(record_id, None)

    def records(self, entity: str, user_id: Optional[str] = None) -> Dict[str, Record]:
        """Direct view of a user's stored records, bypassing identity checks"""
        user_id = user_id or self.identity.user_id
        return self._data[user_id][entity]

    def count(self, operation: str, entity: Optional[str] = None) -> int:
        return sum(
            1 for op, ent, _ in self.calls
            if op == operation and (entity is None or ent == entity)
        )
