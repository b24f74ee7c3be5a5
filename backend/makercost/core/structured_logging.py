"""
Structured logging utilities for sync passes, store operations and autosave.
Uses JSON format for better analysis and observability.
"""
import json
import logging
from typing import Dict, Any, Optional
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def log_event(
    event_type: str,
    level: str = "info",
    **kwargs
) -> Dict[str, Any]:
    """
    Log an event with structured JSON format.

    Args:
        event_type: Type of event (sync_pass, store_operation, autosave, etc.)
        level: Logging level name
        **kwargs: Additional context fields

    Returns:
        The logged payload (useful for tests)
    """
    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type,
        **kwargs
    }

    # Remove None values for cleaner logs
    log_data = {k: v for k, v in log_data.items() if v is not None}

    logger.log(_LEVELS.get(level, logging.INFO), f"MAKERCOST_EVENT: {json.dumps(log_data, ensure_ascii=False, default=str)}")
    return log_data


def log_sync_event(
    phase: str,
    status: str,
    duration_ms: Optional[float] = None,
    error: Optional[str] = None,
    conflicts: Optional[int] = None,
    forced: Optional[bool] = None,
    **kwargs
) -> Dict[str, Any]:
    """Log a sync orchestrator transition."""
    return log_event(
        event_type="sync",
        level="error" if error and status == "error" else "info",
        phase=phase,
        status=status,
        duration_ms=duration_ms,
        error=error,
        conflicts=conflicts,
        forced=forced,
        **kwargs
    )


def log_store_operation(
    store: str,
    operation: str,
    success: bool,
    entity_id: Optional[str] = None,
    error: Optional[str] = None,
    level: Optional[str] = None,
    **kwargs
) -> Dict[str, Any]:
    """Log the outcome of a store's remote operation."""
    return log_event(
        event_type="store_operation",
        level=level or ("info" if success else "error"),
        store=store,
        operation=operation,
        entity_id=entity_id,
        execution_success=success,
        error=error,
        **kwargs
    )


def log_autosave(
    decision: str,
    quote_id: Optional[str] = None,
    quote_number: Optional[str] = None,
    reason: Optional[str] = None,
    level: str = "info",
    **kwargs
) -> Dict[str, Any]:
    """Log an autosave decision (skipped, scheduled, saved, remote_failed)."""
    return log_event(
        event_type="autosave",
        level=level,
        decision=decision,
        quote_id=quote_id,
        quote_number=quote_number,
        reason=reason,
        **kwargs
    )
