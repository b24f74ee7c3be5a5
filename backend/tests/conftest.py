from datetime import datetime, timedelta, timezone
import itertools

import pytest

from makercost.adapters.memory_adapter import InMemoryDatabaseAdapter
from makercost.core.clock import Clock
from makercost.core.config import Settings
from makercost.core.identity import IdentityProvider
from makercost.core.local_storage import InMemorySnapshotStorage
from makercost.core.notifications import Notifier
from makercost.core.workspace import Workspace
from makercost.schemas.pricing import (
    CostMaterial,
    LaborInput,
    OverheadAllocation,
    Product,
    SalePriceInfo,
    VATSettings,
)


class FakeClock(Clock):
    """Clock frozen at a fixed instant with sequential ids"""

    def __init__(self, start: datetime = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)):
        self.current = start
        self._ids = itertools.count(1)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)

    def new_id(self) -> str:
        return f"id-{next(self._ids)}"


class RecordingNotifier(Notifier):
    def __init__(self):
        self.messages = []

    def notify(self, message: str, severity: str = "info") -> None:
        self.messages.append((severity, message))

    def severities(self):
        return [severity for severity, _ in self.messages]


def build_product(**overrides) -> Product:
    """10 x 2.00 material, 2h labor at 25, flat overhead 10, sold for 100"""
    data = dict(
        id="product-1",
        product_name="Walnut Board",
        materials=[CostMaterial(id="mat-1", name="Walnut", quantity_used=10, cost_per_unit=2, waste_percent=0)],
        labor=LaborInput(hours=2, rate_per_hour=25),
        overhead=OverheadAllocation(method="flat", amount=10),
        sale_price=SalePriceInfo(amount=100, units_count=1, is_per_unit=True, fixed_charge=0),
        vat_settings=VATSettings(rate=0, is_inclusive=False),
    )
    data.update(overrides)
    return Product(**data)


@pytest.fixture
def make_product():
    return build_product


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def storage():
    return InMemorySnapshotStorage()


@pytest.fixture
def identity():
    """Signed in as user-1; constructing with a user does not fire auth listeners"""
    return IdentityProvider("user-1")


@pytest.fixture
def anonymous():
    return IdentityProvider()


@pytest.fixture
def adapter(identity):
    return InMemoryDatabaseAdapter(identity)


@pytest.fixture
def config():
    return Settings(
        AUTOSAVE_ENABLED=False,
        AUTOSAVE_INTERVAL_SECONDS=0.05,
        SYNC_SETTLE_DELAY_SECONDS=0.01,
        SYNC_TIMEOUT_SECONDS=0.5,
        ELECTRICITY_RATE_SOURCE="shop",
    )


@pytest.fixture
def store_args(adapter, notifier, storage, clock):
    return (adapter, notifier, storage, clock)


@pytest.fixture
def workspace(adapter, identity, notifier, storage, clock, config):
    return Workspace(
        adapter=adapter,
        identity=identity,
        notifier=notifier,
        storage=storage,
        clock=clock,
        config=config,
    )
