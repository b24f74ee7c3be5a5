"""
Autosave: persists the edited project as a draft quote without user action.

Changes are debounced; each change pushes the pending save out by the full
interval. ``save_now`` skips the wait. A save is skipped when the project has
no meaningful content or has not changed since the last save. The local
draft is the durable copy; the remote write is best effort.
"""
from typing import Callable, Optional
import logging

from makercost.core.clock import Clock
from makercost.core.identity import IdentityProvider
from makercost.core.structured_logging import log_autosave
from makercost.core.tasks import DebouncedTask
from makercost.schemas.pricing import CostContext
from makercost.schemas.quote import Quote
from makercost.stores.base import fingerprint
from makercost.stores.projects import ProjectStore
from makercost.stores.quotes import QuoteStore

logger = logging.getLogger(__name__)


class AutosaveController:
    def __init__(
        self,
        project_store: ProjectStore,
        quote_store: QuoteStore,
        identity: IdentityProvider,
        context_provider: Optional[Callable[[], CostContext]] = None,
        interval: float = 30.0,
        require_minimal_content: bool = True,
        clock: Optional[Clock] = None
    ):
        self.project_store = project_store
        self.quote_store = quote_store
        self.identity = identity
        self.context_provider = context_provider or CostContext
        self.require_minimal_content = require_minimal_content
        self.clock = clock or Clock()
        self.last_saved_hash: Optional[str] = None
        self.last_saved_at = None
        self.save_count = 0
        self._task = DebouncedTask(self.save, interval, name="autosave")
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def interval(self) -> float:
        return self._task.delay

    @property
    def pending(self) -> bool:
        return self._task.pending

    def start(self) -> None:
        """Begin observing the project store"""
        if self._unsubscribe is None:
            self._unsubscribe = self.project_store.subscribe(self._on_change)

    def stop(self) -> None:
        self._task.cancel()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def current_hash(self, context: Optional[CostContext] = None) -> str:
        context = context or self.context_provider()
        return fingerprint({
            "project": self.project_store.content(),
            "context": context.model_dump(mode="json"),
        })

    def _should_skip(self, state_hash: str) -> Optional[str]:
        if self.require_minimal_content and not self.project_store.has_minimal_content():
            return "no_content"
        if state_hash == self.last_saved_hash:
            return "unchanged"
        return None

    def _on_change(self, _state) -> None:
        reason = self._should_skip(self.current_hash())
        if reason:
            logger.debug(f"Autosave not scheduled: {reason}")
            return
        try:
            self._task.schedule()
        except RuntimeError:
            logger.debug("No running event loop, autosave not scheduled")
            return
        log_autosave("scheduled", reason=f"in {self.interval:g}s", level="debug")

    async def save_now(self) -> Optional[Quote]:
        """Cancel any pending save and save immediately"""
        return await self._task.fire_now()

    async def wait(self) -> None:
        await self._task.wait()

    async def save(self) -> Optional[Quote]:
        """
        Save the project into its draft quote.

        Returns:
            The saved draft, or None when the save was skipped
        """
        context = self.context_provider()
        state_hash = self.current_hash(context)
        reason = self._should_skip(state_hash)
        if reason:
            log_autosave("skipped", reason=reason)
            return None

        project = self.project_store.get()
        draft = self.quote_store.find_or_create_draft_quote(
            project.project_name,
            project.client_name,
            project.currency,
            mirror=False
        )
        quote = self.quote_store.update_quote_from_project(draft.id, project, context, mirror=False)
        if quote is None:
            log_autosave("skipped", quote_id=draft.id, reason="draft_missing", level="warning")
            return None

        self.last_saved_hash = state_hash
        self.last_saved_at = self.clock.now()
        self.save_count += 1
        log_autosave("saved", quote_id=quote.id, quote_number=quote.quote_number)

        if self.identity.is_authenticated:
            saved = await self.quote_store.save_to_database(quote.model_dump(mode="json"), quiet=True)
            if not saved:
                log_autosave(
                    "remote_failed",
                    quote_id=quote.id,
                    quote_number=quote.quote_number,
                    reason=self.quote_store.last_error,
                    level="warning"
                )
        return quote
