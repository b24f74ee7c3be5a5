"""
Local-first state containers.

A store owns its state and is the only code that mutates it. Every mutation
applies locally and synchronously, persists a snapshot, notifies listeners,
and then mirrors the change to the database in a background task. Remote
failures are recorded in ``last_error`` and never undo a local change.
"""
from typing import Any, Awaitable, Callable, Dict, Generic, Iterable, List, Optional, Set, Type, TypeVar
import asyncio
import hashlib
import json
import logging
import time

from pydantic import BaseModel

from makercost.adapters.base import DatabaseAdapter, Record
from makercost.core.clock import Clock
from makercost.core.exceptions import MakerCostError, NotAuthenticatedError
from makercost.core.local_storage import InMemorySnapshotStorage, Migration, SnapshotStorage, load_snapshot, save_snapshot
from makercost.core.notifications import LoggingNotifier, Notifier
from makercost.core.structured_logging import log_store_operation
from makercost.utils.validators import apply_updates, validate_model

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
Listener = Callable[[Any], None]


def _canonical(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {key: _canonical(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(item) for item in value]
    return value


def fingerprint(record: Optional[Record]) -> Optional[str]:
    """Structural hash of a record; equal content gives an equal hash"""
    if record is None:
        return None
    payload = json.dumps(_canonical(record), sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def changed_fields(local: Optional[Record], remote: Optional[Record]) -> List[str]:
    """Top-level keys whose values differ between two records"""
    local = local or {}
    remote = remote or {}
    keys = set(local) | set(remote)
    return sorted(key for key in keys if _canonical(local.get(key)) != _canonical(remote.get(key)))


class LocalStore:
    """
    Base class for all stores.

    Subclasses set ``name`` (snapshot key), ``entity`` (database entity),
    ``version`` and ``migrations``, and implement the state hooks below.
    """

    name: str = ""
    entity: str = ""
    version: int = 1
    migrations: Dict[int, Migration] = {}

    def __init__(
        self,
        adapter: DatabaseAdapter,
        notifier: Optional[Notifier] = None,
        storage: Optional[SnapshotStorage] = None,
        clock: Optional[Clock] = None
    ):
        self.adapter = adapter
        self.notifier = notifier or LoggingNotifier()
        self.storage = storage or InMemorySnapshotStorage()
        self.clock = clock or Clock()
        self.last_error: Optional[str] = None
        self._remote_calls = 0
        self._listeners: List[Listener] = []
        self._pending: Set[asyncio.Task] = set()
        self._baseline: Dict[str, str] = {}
        self._restore()

    # ============= STATE HOOKS =============

    def _reset_state(self) -> None:
        raise NotImplementedError

    def _dump_state(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _load_state(self, state: Dict[str, Any]) -> None:
        raise NotImplementedError

    def records(self) -> Dict[str, Record]:
        """Every entity this store mirrors remotely, as JSON records by id"""
        raise NotImplementedError

    def normalize(self, record: Record) -> Record:
        """Validate a remote record and dump it the way ``records`` does"""
        raise NotImplementedError

    def _put_record(self, record: Record) -> None:
        raise NotImplementedError

    def _drop_record(self, record_id: str) -> None:
        raise NotImplementedError

    def default_fingerprints(self) -> Dict[str, str]:
        """Fingerprints of records that exist only because of store defaults"""
        return {}

    # ============= SNAPSHOT / LISTENERS =============

    def _restore(self) -> None:
        self._reset_state()
        state = load_snapshot(self.storage, self.name, self.version, self.migrations)
        if state is None:
            return
        try:
            self._load_state(state)
            self._baseline = dict(state.get("_baseline") or {})
        except (MakerCostError, ValueError, TypeError, KeyError) as e:
            logger.warning(f"Discarding {self.name} snapshot that failed validation: {e}")
            self._reset_state()
            self._baseline = {}

    def _persist(self) -> None:
        state = self._dump_state()
        state["_baseline"] = dict(self._baseline)
        try:
            save_snapshot(self.storage, self.name, self.version, state)
        except OSError as e:
            logger.error(f"Failed to persist {self.name} snapshot: {e}")

    def _commit(self) -> None:
        self._persist()
        snapshot = self.get_state()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"{self.name} listener failed: {e}", exc_info=True)

    def get_state(self) -> Any:
        """Read-only copy of the current state handed to listeners"""
        return self._dump_state()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_local(self) -> None:
        self._reset_state()
        self._baseline = {}
        self.storage.remove(self.name)
        self._commit()

    # ============= SYNC BASELINE =============

    @property
    def baseline(self) -> Dict[str, str]:
        return dict(self._baseline)

    def apply_sync_result(
        self,
        upserts: Iterable[Record] = (),
        removals: Iterable[str] = (),
        synced: Optional[Dict[str, Optional[str]]] = None
    ) -> None:
        """
        Apply reconciled remote state without triggering remote writes.

        Args:
            upserts: Records (already normalized) to place into local state
            removals: Ids to drop from local state
            synced: New baseline fingerprints; None removes the entry
        """
        for record in upserts:
            self._put_record(record)
        for record_id in removals:
            self._drop_record(record_id)
        for record_id, value in (synced or {}).items():
            if value is None:
                self._baseline.pop(record_id, None)
            else:
                self._baseline[record_id] = value
        self._commit()

    # ============= REMOTE OPERATIONS =============

    @property
    def is_loading(self) -> bool:
        """True while any database call of this store is queued or running"""
        return bool(self._remote_calls or self._pending)

    def _spawn(self, coro: Awaitable[Any]) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the change stays local until the next sync pass
            coro.close()
            logger.debug(f"{self.name}: no running loop, remote mirror deferred")
            return None
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every in-flight remote operation started by this store"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _remote(
        self,
        operation: str,
        call: Callable[[], Awaitable[Any]],
        entity_id: Optional[str] = None,
        failure_level: str = "error",
        notify: bool = True
    ) -> Any:
        """
        Run a database call, converting failures into ``last_error``.

        Returns the call's result, or None when it failed.
        """
        start = time.time()
        self._remote_calls += 1
        try:
            result = await call()
            self.last_error = None
            log_store_operation(self.name, operation, True, entity_id=entity_id,
                                duration_ms=int((time.time() - start) * 1000))
            return result
        except NotAuthenticatedError as e:
            self.last_error = e.message
            log_store_operation(self.name, operation, False, entity_id=entity_id, error=e.message, level="info")
            logger.info(f"User not authenticated, {self.name} kept local only")
            return None
        except MakerCostError as e:
            self.last_error = e.message
            log_store_operation(self.name, operation, False, entity_id=entity_id, error=e.message,
                                level=failure_level)
            if notify:
                self.notifier.notify(f"Could not {operation.replace('_', ' ')} {self.name}: {e.message}",
                                     "warning" if failure_level == "warning" else "error")
            return None
        except Exception as e:
            self.last_error = str(e)
            logger.error(f"{self.name} {operation} failed unexpectedly: {str(e)}", exc_info=True)
            self.notifier.notify(f"Could not {operation.replace('_', ' ')} {self.name}", "error")
            return None
        finally:
            self._remote_calls -= 1

    async def save_to_database(self, record: Record, quiet: bool = False) -> bool:
        """
        Mirror one record; on success it becomes the sync baseline.

        ``quiet`` logs failures at warning without notifying the user.
        """
        async def call():
            await self.adapter.save(self.entity, record)
            return True

        saved = await self._remote("save", call, entity_id=record.get("id"),
                                   failure_level="warning" if quiet else "error", notify=not quiet)
        if saved:
            self._baseline[record["id"]] = fingerprint(record)
            self._persist()
        return bool(saved)

    async def load_from_database(self) -> Optional[List[Record]]:
        """
        Replace local state with the remote copy.

        Returns the loaded records, or None when loading failed and local
        state was kept.
        """
        records = await self._remote("load", lambda: self.adapter.load_all(self.entity))
        if records is None:
            return None
        normalized = [self.normalize(record) for record in records]
        remote_ids = {record["id"] for record in normalized}
        stale = [record_id for record_id in self.records() if record_id not in remote_ids]
        self._baseline = {}
        self.apply_sync_result(
            upserts=normalized,
            removals=stale,
            synced={record["id"]: fingerprint(record) for record in normalized}
        )
        return normalized

    async def delete_from_database(self, record_id: str) -> bool:
        async def call():
            await self.adapter.delete(self.entity, record_id)
            return True

        deleted = await self._remote("delete", call, entity_id=record_id, failure_level="warning")
        if deleted:
            self._baseline.pop(record_id, None)
            self._persist()
        return bool(deleted)


class CollectionStore(LocalStore, Generic[ModelT]):
    """Store holding an ordered collection of models keyed by id"""

    model: Type[ModelT]

    def _reset_state(self) -> None:
        self._items: Dict[str, ModelT] = {}

    def _dump_state(self) -> Dict[str, Any]:
        return {"items": [item.model_dump(mode="json") for item in self._items.values()]}

    def _load_state(self, state: Dict[str, Any]) -> None:
        items = [validate_model(self.model, data) for data in state.get("items", [])]
        self._items = {item.id: item for item in items}

    def records(self) -> Dict[str, Record]:
        return {item_id: item.model_dump(mode="json") for item_id, item in self._items.items()}

    def normalize(self, record: Record) -> Record:
        return validate_model(self.model, record).model_dump(mode="json")

    def _put_record(self, record: Record) -> None:
        item = validate_model(self.model, record)
        self._items[item.id] = item

    def _drop_record(self, record_id: str) -> None:
        self._items.pop(record_id, None)

    # ============= QUERIES =============

    def all(self) -> List[ModelT]:
        return [item.model_copy(deep=True) for item in self._items.values()]

    def get_by_id(self, item_id: str) -> Optional[ModelT]:
        item = self._items.get(item_id)
        return item.model_copy(deep=True) if item else None

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    # ============= MUTATIONS =============

    def _mirror(self, item: ModelT) -> None:
        self._spawn(self.save_to_database(item.model_dump(mode="json")))

    def _store(self, item: ModelT, mirror: bool = True) -> ModelT:
        self._items[item.id] = item
        self._commit()
        if mirror:
            self._mirror(item)
        return item.model_copy(deep=True)

    def add(self, data: Any) -> ModelT:
        """Validate and add an item; a model instance is copied, never kept"""
        if isinstance(data, BaseModel):
            data = data.model_dump()
        item = validate_model(self.model, data)
        return self._store(item)

    def update(self, item_id: str, updates: Dict[str, Any]) -> Optional[ModelT]:
        """Apply a partial update; unknown ids are logged and ignored"""
        item = self._items.get(item_id)
        if item is None:
            logger.warning(f"{self.name}: update for unknown id {item_id} ignored")
            return None
        updated = apply_updates(item, self._touch(updates))
        return self._store(updated)

    def remove(self, item_id: str) -> bool:
        if self._items.pop(item_id, None) is None:
            return False
        self._commit()
        self._spawn(self.delete_from_database(item_id))
        return True

    def _touch(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Hook for stamping modification times onto updates"""
        return updates


class SingletonStore(LocalStore, Generic[ModelT]):
    """Store holding exactly one model, mirrored as a single record"""

    model: Type[ModelT]

    def _default(self) -> ModelT:
        return self.model()

    def _reset_state(self) -> None:
        self._value: ModelT = self._default()

    def _dump_state(self) -> Dict[str, Any]:
        return {"value": self._value.model_dump(mode="json")}

    def _load_state(self, state: Dict[str, Any]) -> None:
        self._value = validate_model(self.model, state.get("value") or {})

    def records(self) -> Dict[str, Record]:
        return {self._value.id: self._value.model_dump(mode="json")}

    def normalize(self, record: Record) -> Record:
        return validate_model(self.model, record).model_dump(mode="json")

    def _put_record(self, record: Record) -> None:
        self._value = validate_model(self.model, record)

    def _drop_record(self, record_id: str) -> None:
        if record_id == self._value.id:
            self._value = self._default()

    def default_fingerprints(self) -> Dict[str, str]:
        default = self._default().model_dump(mode="json")
        return {default["id"]: fingerprint(default)}

    def get(self) -> ModelT:
        return self._value.model_copy(deep=True)

    def _set(self, value: ModelT) -> ModelT:
        self._value = value
        self._commit()
        self._spawn(self.save_to_database(value.model_dump(mode="json")))
        return value.model_copy(deep=True)

    def update(self, updates: Dict[str, Any]) -> ModelT:
        return self._set(apply_updates(self._value, updates))

    def reset(self) -> ModelT:
        return self._set(self._default())
