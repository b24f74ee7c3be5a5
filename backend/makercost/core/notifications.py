"""
Notification sink for user-visible outcomes (toasts in the UI, log lines here).
"""
from abc import ABC, abstractmethod
import logging

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Receives user-facing messages from stores, sync and autosave"""

    @abstractmethod
    def notify(self, message: str, severity: str = "info") -> None:
        pass


class LoggingNotifier(Notifier):
    """Writes notifications to the application log"""

    _LEVELS = {
        "info": logging.INFO,
        "success": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    def notify(self, message: str, severity: str = "info") -> None:
        logger.log(self._LEVELS.get(severity, logging.INFO), f"[{severity}] {message}")

