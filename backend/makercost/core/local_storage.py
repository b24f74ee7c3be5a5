"""
Persisted local snapshots for the reactive stores.

Each store is saved as one JSON document:

    {"store": "<name>", "version": <int>, "state": {...}}

On load, older versions are upgraded through registered migrations; anything
that cannot be upgraded (unknown version, wrong store, unreadable file) is
discarded and the store starts from its defaults.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Optional
import json
import logging

logger = logging.getLogger(__name__)

Migration = Callable[[Dict[str, Any]], Dict[str, Any]]


class SnapshotStorage(ABC):
    """Key/value storage for serialized store snapshots"""

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def write(self, key: str, data: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class InMemorySnapshotStorage(SnapshotStorage):
    def __init__(self):
        self.items: Dict[str, str] = {}

    def read(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def write(self, key: str, data: str) -> None:
        self.items[key] = data

    def remove(self, key: str) -> None:
        self.items.pop(key, None)


class FileSnapshotStorage(SnapshotStorage):
    """One ``<key>.json`` file per store under ``directory``"""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not read snapshot {path}: {e}")
            return None

    def write(self, key: str, data: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(data, encoding="utf-8")
        tmp_path.replace(path)

    def remove(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


def save_snapshot(storage: SnapshotStorage, store: str, version: int, state: Dict[str, Any]) -> None:
    document = {"store": store, "version": version, "state": state}
    storage.write(store, json.dumps(document, default=str))


def load_snapshot(
    storage: SnapshotStorage,
    store: str,
    version: int,
    migrations: Optional[Dict[int, Migration]] = None
) -> Optional[Dict[str, Any]]:
    """
    Load and upgrade a store snapshot.

    Args:
        storage: Snapshot backend
        store: Store name (also the storage key)
        version: Version the store currently writes
        migrations: Map of version N to a function upgrading N state to N + 1

    Returns:
        The state dict at ``version``, or None when nothing usable was stored
    """
    raw = storage.read(store)
    if raw is None:
        return None

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Discarding unreadable snapshot for {store}: {e}")
        return None

    if not isinstance(document, dict) or document.get("store") != store:
        logger.warning(f"Discarding snapshot for {store}: store name mismatch")
        return None

    state = document.get("state")
    stored_version = document.get("version")
    if not isinstance(state, dict) or not isinstance(stored_version, int):
        logger.warning(f"Discarding malformed snapshot for {store}")
        return None

    migrations = migrations or {}
    while stored_version < version and stored_version in migrations:
        try:
            state = migrations[stored_version](state)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Migration of {store} from v{stored_version} failed, discarding: {e}")
            return None
        logger.info(f"Migrated {store} snapshot v{stored_version} -> v{stored_version + 1}")
        stored_version += 1

    if stored_version != version:
        logger.warning(
            f"Discarding {store} snapshot: version {document.get('version')} is not compatible with {version}"
        )
        return None

    return state
