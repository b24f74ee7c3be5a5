from typing import List, Optional
import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from makercost.adapters.base import DatabaseAdapter, Record, check_entity
from makercost.core.database import get_session_factory
from makercost.core.exceptions import NotAuthenticatedError, RemoteIOError
from makercost.core.identity import IdentityProvider
from makercost.models.records import ENTITY_TABLES

logger = logging.getLogger(__name__)


class SQLAlchemyDatabaseAdapter(DatabaseAdapter):
    """Stores each entity as JSON payload rows keyed by (user_id, id)"""

    def __init__(self, identity: IdentityProvider, session_factory: Optional[async_sessionmaker] = None):
        self.identity = identity
        self._session_factory = session_factory

    @property
    def session_factory(self) -> async_sessionmaker:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    def _user_id(self) -> str:
        user_id = self.identity.user_id
        if user_id is None:
            raise NotAuthenticatedError()
        return user_id

    async def save(self, entity: str, record: Record) -> None:
        model = ENTITY_TABLES[check_entity(entity)]
        user_id = self._user_id()
        try:
            async with self.session_factory() as session:
                row = await session.get(model, {"id": record["id"], "user_id": user_id})
                if row is None:
                    session.add(model(id=record["id"], user_id=user_id, payload=record))
                else:
                    row.payload = record
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to save {entity} {record.get('id')}: {str(e)}")
            raise RemoteIOError(f"Failed to save {entity}", original_error=e)

    async def load_all(self, entity: str) -> List[Record]:
        model = ENTITY_TABLES[check_entity(entity)]
        user_id = self._user_id()
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(model).where(model.user_id == user_id).order_by(model.created_at, model.id)
                )
                return [row.payload for row in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to load {entity}: {str(e)}")
            raise RemoteIOError(f"Failed to load {entity}", original_error=e)

    async def delete(self, entity: str, record_id: str) -> None:
        model = ENTITY_TABLES[check_entity(entity)]
        user_id = self._user_id()
        try:
            async with self.session_factory() as session:
                await session.execute(
                    delete(model).where(model.user_id == user_id, model.id == record_id)
                )
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to delete {entity} {record_id}: {str(e)}")
            raise RemoteIOError(f"Failed to delete {entity}", original_error=e)
