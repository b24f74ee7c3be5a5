from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"
    CONFLICT = "conflict"


class SyncConflict(BaseModel):
    """One entity whose local and cloud copies diverged since the last sync"""
    store: str
    entity_id: str
    local: Optional[Dict[str, Any]] = None
    remote: Optional[Dict[str, Any]] = None
    changed_fields: List[str] = Field(default_factory=list)


class SyncState(BaseModel):
    status: SyncStatus = SyncStatus.IDLE
    last_error: Optional[str] = None
    has_synced_session: bool = False
    conflicts: List[SyncConflict] = Field(default_factory=list)


class ResolveConflictRequest(BaseModel):
    winner: Literal["local", "cloud"]
