from fastapi import APIRouter, Depends, status
import logging

from makercost.api.deps import get_workspace
from makercost.core.exceptions import ConflictError
from makercost.core.workspace import Workspace
from makercost.schemas.requests import SessionCreate, SessionResponse
from makercost.schemas.sync import ResolveConflictRequest, SyncState, SyncStatus

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/sync/status", response_model=SyncState)
async def get_sync_status(workspace: Workspace = Depends(get_workspace)):
    return workspace.sync.state


@router.post("/sync", response_model=SyncState)
async def run_sync(force: bool = False, workspace: Workspace = Depends(get_workspace)):
    """
    Run a sync pass now.

    Responds 409 with the conflicting records when local and cloud copies
    diverged; settle them with ``/sync/resolve``.
    """
    state = await workspace.sync.sync(force=force)
    if state.status == SyncStatus.CONFLICT:
        raise ConflictError(state.conflicts)
    return state


@router.post("/sync/resolve", response_model=SyncState)
async def resolve_conflicts(request: ResolveConflictRequest, workspace: Workspace = Depends(get_workspace)):
    return await workspace.sync.resolve_conflict(request.winner)


@router.get("/session", response_model=SessionResponse)
async def get_session(workspace: Workspace = Depends(get_workspace)):
    identity = workspace.identity
    return SessionResponse(user_id=identity.user_id, authenticated=identity.is_authenticated)


@router.post("/session", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def login(session: SessionCreate, workspace: Workspace = Depends(get_workspace)):
    """Sign in; the first sync runs once the session settles"""
    workspace.identity.login(session.user_id)
    logger.info(f"Session started for {session.user_id}")
    return SessionResponse(user_id=session.user_id, authenticated=True)


@router.delete("/session", response_model=SessionResponse)
async def logout(workspace: Workspace = Depends(get_workspace)):
    workspace.identity.logout()
    return SessionResponse(authenticated=False)
