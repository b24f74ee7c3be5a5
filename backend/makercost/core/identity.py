"""
Current-user identity as seen by the database adapter and sync orchestrator.
"""
from typing import Callable, List, Optional
import logging

logger = logging.getLogger(__name__)

AuthListener = Callable[[Optional[str], Optional[str]], None]


class IdentityProvider:
    """
    Holds the authenticated user id, or None when signed out.

    Listeners are called with (previous_user_id, current_user_id) on every
    change.
    """

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id
        self._listeners: List[AuthListener] = []

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def login(self, user_id: str) -> None:
        self._set(user_id)

    def logout(self) -> None:
        self._set(None)

    def _set(self, user_id: Optional[str]) -> None:
        previous = self._user_id
        if previous == user_id:
            return
        self._user_id = user_id
        logger.info(f"Auth state changed: {'signed in' if user_id else 'signed out'}")
        for listener in list(self._listeners):
            listener(previous, user_id)
