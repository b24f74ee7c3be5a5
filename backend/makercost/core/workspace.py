"""
Wiring for one running MakerCost instance: identity, database adapter,
notifier, snapshot storage, every local store, the sync orchestrator and the
autosave controller.
"""
from typing import List, Optional
import logging

from makercost.adapters.base import DatabaseAdapter
from makercost.adapters.sqlalchemy_adapter import SQLAlchemyDatabaseAdapter
from makercost.core.clock import Clock
from makercost.core.config import Settings, settings as default_settings
from makercost.core.identity import IdentityProvider
from makercost.core.local_storage import FileSnapshotStorage, SnapshotStorage
from makercost.core.notifications import LoggingNotifier, Notifier
from makercost.schemas.pricing import CostContext
from makercost.services.autosave import AutosaveController
from makercost.services.excel_export import QuoteExcelExporter
from makercost.services.sync_orchestrator import SyncOrchestrator
from makercost.stores import (
    LocalStore,
    MachinesStore,
    MaterialsStore,
    ProjectStore,
    QuoteStore,
    ShopStore,
    SubscriptionStore,
)

logger = logging.getLogger(__name__)


class Workspace:
    def __init__(
        self,
        adapter: Optional[DatabaseAdapter] = None,
        identity: Optional[IdentityProvider] = None,
        notifier: Optional[Notifier] = None,
        storage: Optional[SnapshotStorage] = None,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None
    ):
        self.config = config or default_settings
        self.identity = identity or IdentityProvider()
        self.adapter = adapter or SQLAlchemyDatabaseAdapter(self.identity)
        self.notifier = notifier or LoggingNotifier()
        self.storage = storage or FileSnapshotStorage(self.config.LOCAL_STORAGE_DIR)
        self.clock = clock or Clock()

        store_args = (self.adapter, self.notifier, self.storage, self.clock)
        self.materials = MaterialsStore(*store_args)
        self.machines = MachinesStore(*store_args)
        self.shop = ShopStore(*store_args)
        self.subscription = SubscriptionStore(*store_args)
        self.project = ProjectStore(*store_args)
        self.quotes = QuoteStore(*store_args)

        self.sync = SyncOrchestrator(
            self.adapter,
            self.identity,
            self.notifier,
            [self.shop, self.machines, self.materials, self.quotes],
            settle_delay=self.config.SYNC_SETTLE_DELAY_SECONDS,
            timeout=self.config.SYNC_TIMEOUT_SECONDS,
            conflict_detection=self.config.SYNC_CONFLICT_DETECTION,
        )
        self.autosave = AutosaveController(
            self.project,
            self.quotes,
            self.identity,
            context_provider=self.cost_context,
            interval=self.config.AUTOSAVE_INTERVAL_SECONDS,
            require_minimal_content=self.config.AUTOSAVE_REQUIRE_MINIMAL_CONTENT,
            clock=self.clock,
        )
        if self.config.AUTOSAVE_ENABLED:
            self.autosave.start()

        logger.info(
            f"Workspace ready: adapter={type(self.adapter).__name__} "
            f"storage={type(self.storage).__name__} autosave={self.config.AUTOSAVE_ENABLED}"
        )

    @property
    def stores(self) -> List[LocalStore]:
        return [self.materials, self.machines, self.shop, self.subscription, self.project, self.quotes]

    def cost_context(self) -> CostContext:
        """Shop-derived inputs for the pricing engine"""
        return self.shop.cost_context(self.config.ELECTRICITY_RATE_SOURCE)

    def excel_exporter(self) -> QuoteExcelExporter:
        return QuoteExcelExporter(self.shop.export_header(), self.cost_context())

    async def wait_idle(self) -> None:
        """Wait for background remote writes from every store"""
        for store in self.stores:
            await store.wait_idle()

    def close(self) -> None:
        self.autosave.stop()
        self.sync.close()
