import asyncio
import logging

import pytest

from makercost.adapters.memory_adapter import InMemoryDatabaseAdapter
from makercost.schemas.catalog import ShopData
from makercost.schemas.sync import SyncStatus
from makercost.services.sync_orchestrator import SyncOrchestrator, plan_reconciliation
from makercost.stores import MachinesStore, MaterialsStore, QuoteStore, ShopStore
from makercost.stores.base import fingerprint
from makercost.stores.machines import DEMO_MACHINE

WALNUT = {"name": "Walnut plank", "cost_per_unit": 12, "current_stock": 4}


class Stores:
    def __init__(self, adapter, notifier, storage, clock):
        self.shop = ShopStore(adapter, notifier, storage, clock)
        self.machines = MachinesStore(adapter, notifier, storage, clock)
        self.materials = MaterialsStore(adapter, notifier, storage, clock)
        self.quotes = QuoteStore(adapter, notifier, storage, clock)

    def all(self):
        return [self.shop, self.machines, self.materials, self.quotes]

    async def wait_idle(self):
        for store in self.all():
            await store.wait_idle()


@pytest.fixture
def stores(store_args):
    return Stores(*store_args)


@pytest.fixture
def make_orchestrator(adapter, identity, notifier, stores):
    def make(**kwargs):
        options = dict(settle_delay=0.01, timeout=0.5)
        options.update(kwargs)
        return SyncOrchestrator(adapter, identity, notifier, stores.all(), **options)
    return make


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()


async def offline(adapter, stores, change):
    """Apply a local change while the database is unreachable"""
    adapter.fail_with = "offline"
    result = change()
    await stores.wait_idle()
    adapter.fail_with = None
    return result


async def diverge(adapter, stores):
    """A material edited locally while offline and differently in the cloud"""
    material = stores.materials.add_material(WALNUT)
    await stores.wait_idle()
    await offline(adapter, stores, lambda: stores.materials.update_material(material.id, {"cost_per_unit": 20}))

    remote = adapter.records("materials")[material.id]
    remote["name"] = "Walnut (cloud)"
    remote["cost_per_unit"] = 30
    return material.id


# ============= PASSES =============

async def test_signed_out_sync_does_nothing(anonymous, notifier, storage, clock):
    adapter = InMemoryDatabaseAdapter(anonymous)
    stores = Stores(adapter, notifier, storage, clock)
    orchestrator = SyncOrchestrator(adapter, anonymous, notifier, stores.all())

    state = await orchestrator.sync()

    assert state.status == SyncStatus.IDLE
    assert state.last_error == "User not authenticated"
    assert adapter.calls == []


async def test_fresh_user_keeps_defaults_without_writing(orchestrator, adapter, stores):
    state = await orchestrator.sync()

    assert state.status == SyncStatus.SYNCED
    assert state.has_synced_session is True
    assert adapter.count("load_all") == 4
    assert adapter.count("save") == 0
    assert DEMO_MACHINE["id"] in stores.machines
    assert stores.shop.get().name == "My Workshop"


async def test_cloud_shop_replaces_untouched_defaults(orchestrator, adapter, stores):
    adapter.records("shop")["shop"] = ShopData(name="Cloud Shop", rent_lease=1000).model_dump(mode="json")

    await orchestrator.sync()

    assert stores.shop.get().name == "Cloud Shop"
    assert stores.shop.monthly_overhead() == 2500
    assert stores.shop.baseline == {"shop": fingerprint(adapter.records("shop")["shop"])}


async def test_edited_defaults_are_pushed(orchestrator, adapter, stores):
    await offline(adapter, stores, lambda: stores.shop.update_shop_data({"name": "Edited"}))

    await orchestrator.sync()

    assert adapter.records("shop")["shop"]["name"] == "Edited"
    assert "demo-cnc-router" not in adapter.records("machines")


async def test_local_only_record_is_pushed(orchestrator, adapter, stores):
    material = await offline(adapter, stores, lambda: stores.materials.add_material(WALNUT))
    assert adapter.records("materials") == {}

    state = await orchestrator.sync()

    assert state.status == SyncStatus.SYNCED
    assert adapter.records("materials")[material.id]["name"] == "Walnut plank"
    assert material.id in stores.materials.baseline


async def test_remote_deletion_removes_local_copy(orchestrator, adapter, stores):
    material = stores.materials.add_material(WALNUT)
    await stores.wait_idle()
    del adapter.records("materials")[material.id]

    await orchestrator.sync()

    assert material.id not in stores.materials
    assert material.id not in stores.materials.baseline


async def test_offline_deletion_removes_remote_copy(orchestrator, adapter, stores, notifier):
    material = stores.materials.add_material(WALNUT)
    await stores.wait_idle()
    await offline(adapter, stores, lambda: stores.materials.remove_material(material.id))
    assert notifier.severities() == ["warning"]

    await orchestrator.sync()

    assert material.id not in adapter.records("materials")


async def test_invalid_remote_record_is_skipped(orchestrator, adapter, stores, caplog):
    adapter.records("materials")["bad"] = {"id": "bad", "name": "Bad", "cost_per_unit": -1}

    with caplog.at_level(logging.WARNING):
        state = await orchestrator.sync()

    assert state.status == SyncStatus.SYNCED
    assert "bad" not in stores.materials
    assert "Skipping invalid remote materials record bad" in caplog.text


async def test_failed_pass_reports_error(orchestrator, adapter, notifier):
    adapter.fail_with = "down"

    state = await orchestrator.sync()

    assert state.status == SyncStatus.ERROR
    assert state.last_error == "down"
    assert ("error", "Sync failed: down") in notifier.messages


async def test_slow_pass_times_out(make_orchestrator, adapter, notifier):
    orchestrator = make_orchestrator(timeout=0.05)
    adapter.delay = 1.0

    state = await orchestrator.sync()

    assert state.status == SyncStatus.ERROR
    assert state.last_error == "Sync timed out after 0.05s"
    assert orchestrator.is_syncing is False
    assert notifier.severities() == ["error"]


async def test_overlapping_pass_is_dropped(orchestrator, adapter):
    adapter.delay = 0.05
    first = asyncio.create_task(orchestrator.sync())
    await asyncio.sleep(0)
    assert orchestrator.is_syncing is True

    dropped = await orchestrator.sync()
    assert dropped.status == SyncStatus.SYNCING

    assert (await first).status == SyncStatus.SYNCED
    assert adapter.count("load_all") == 4


async def test_forced_pass_runs_alongside(orchestrator, adapter):
    adapter.delay = 0.05
    first = asyncio.create_task(orchestrator.sync())
    await asyncio.sleep(0)

    forced = await orchestrator.sync(force=True)

    assert forced.status == SyncStatus.SYNCED
    await first
    assert adapter.count("load_all") == 8


# ============= CONFLICTS =============

async def test_divergent_edits_raise_conflict(orchestrator, adapter, stores, notifier):
    material_id = await diverge(adapter, stores)

    state = await orchestrator.sync()

    assert state.status == SyncStatus.CONFLICT
    [conflict] = state.conflicts
    assert conflict.store == "user-materials"
    assert conflict.entity_id == material_id
    assert conflict.changed_fields == ["cost_per_unit", "name"]
    assert notifier.severities()[-1] == "warning"
    # Nothing is overwritten until the conflict is resolved
    assert stores.materials.get_by_id(material_id).cost_per_unit == 20
    assert adapter.records("materials")[material_id]["cost_per_unit"] == 30


async def test_resolve_conflict_keeping_local(orchestrator, adapter, stores):
    material_id = await diverge(adapter, stores)
    await orchestrator.sync()

    state = await orchestrator.resolve_conflict("local")

    assert state.status == SyncStatus.SYNCED
    assert state.conflicts == []
    assert adapter.records("materials")[material_id]["cost_per_unit"] == 20
    assert adapter.records("materials")[material_id]["name"] == "Walnut plank"


async def test_resolve_conflict_keeping_cloud(orchestrator, adapter, stores):
    material_id = await diverge(adapter, stores)
    await orchestrator.sync()

    state = await orchestrator.resolve_conflict("cloud")

    assert state.status == SyncStatus.SYNCED
    material = stores.materials.get_by_id(material_id)
    assert material.cost_per_unit == 30
    assert material.name == "Walnut (cloud)"


async def test_resolve_conflict_rejects_unknown_winner(orchestrator):
    with pytest.raises(ValueError):
        await orchestrator.resolve_conflict("both")


async def test_cloud_wins_without_conflict_detection(make_orchestrator, adapter, stores):
    orchestrator = make_orchestrator(conflict_detection=False)
    material_id = await diverge(adapter, stores)

    state = await orchestrator.sync()

    assert state.status == SyncStatus.SYNCED
    assert stores.materials.get_by_id(material_id).cost_per_unit == 30


# ============= AUTH =============

async def test_login_triggers_one_settled_pass(anonymous, notifier, storage, clock):
    adapter = InMemoryDatabaseAdapter(anonymous)
    stores = Stores(adapter, notifier, storage, clock)
    orchestrator = SyncOrchestrator(adapter, anonymous, notifier, stores.all(), settle_delay=0.01)

    anonymous.login("user-1")
    await orchestrator.wait_for_settle()

    assert orchestrator.status == SyncStatus.SYNCED
    assert adapter.count("load_all") == 4

    anonymous.logout()
    assert orchestrator.status == SyncStatus.IDLE
    assert orchestrator.state.has_synced_session is False
    orchestrator.close()


async def test_logout_discards_pass_in_flight(anonymous, notifier, storage, clock):
    adapter = InMemoryDatabaseAdapter(anonymous)
    stores = Stores(adapter, notifier, storage, clock)
    orchestrator = SyncOrchestrator(adapter, anonymous, notifier, stores.all(), settle_delay=10)
    adapter.records("materials", "user-1")["cloud"] = {"id": "cloud", "name": "Cloud walnut", "cost_per_unit": 3}

    anonymous.login("user-1")
    adapter.delay = 0.05
    manual = asyncio.create_task(orchestrator.sync())
    await asyncio.sleep(0.01)
    anonymous.logout()
    await manual

    assert orchestrator.status == SyncStatus.IDLE
    assert orchestrator.state.has_synced_session is False
    assert orchestrator.is_syncing is False
    assert "cloud" not in stores.materials
    assert notifier.messages == []
    orchestrator.close()


async def test_account_switch_syncs_the_new_user(anonymous, notifier, storage, clock):
    adapter = InMemoryDatabaseAdapter(anonymous)
    stores = Stores(adapter, notifier, storage, clock)
    orchestrator = SyncOrchestrator(adapter, anonymous, notifier, stores.all(), settle_delay=0.01)
    adapter.records("materials", "user-1")["first"] = {"id": "first", "name": "Walnut", "cost_per_unit": 3}
    adapter.records("materials", "user-2")["second"] = {"id": "second", "name": "Maple", "cost_per_unit": 4}

    anonymous.login("user-1")
    adapter.delay = 0.05
    stale = asyncio.create_task(orchestrator.sync())
    await asyncio.sleep(0.02)
    anonymous.login("user-2")
    await stale
    await orchestrator.wait_for_settle()

    assert orchestrator.status == SyncStatus.SYNCED
    assert orchestrator.state.has_synced_session is True
    assert "second" in stores.materials
    assert "first" not in stores.materials
    orchestrator.close()


def test_login_without_loop_defers_sync(anonymous, notifier, storage, clock, caplog):
    adapter = InMemoryDatabaseAdapter(anonymous)
    orchestrator = SyncOrchestrator(adapter, anonymous, notifier, Stores(adapter, notifier, storage, clock).all())

    with caplog.at_level(logging.INFO):
        anonymous.login("user-1")

    assert "deferred to manual sync" in caplog.text
    assert orchestrator.status == SyncStatus.IDLE


# ============= PLANNING =============

def record(record_id, **fields):
    return {"id": record_id, **fields}


def test_plan_marks_identical_copies_synced():
    same = record("a", name="Oak")
    plan = plan_reconciliation("materials", {"a": same}, {"a": dict(same)}, {})

    assert plan.synced == {"a": fingerprint(same)}
    assert plan.push == plan.pull == plan.conflicts == []


def test_plan_treats_integral_floats_as_equal():
    local = record("a", cost=2.0)
    remote = record("a", cost=2)
    plan = plan_reconciliation("materials", {"a": local}, {"a": remote}, {"a": fingerprint(local)})

    assert plan.synced == {}
    assert plan.push == plan.pull == []


def test_plan_takes_the_side_that_changed():
    base = record("a", name="Oak")
    edited = record("a", name="Red oak")
    baseline = {"a": fingerprint(base)}

    local_changed = plan_reconciliation("materials", {"a": edited}, {"a": base}, baseline)
    assert local_changed.push == [edited]

    remote_changed = plan_reconciliation("materials", {"a": base}, {"a": edited}, baseline)
    assert remote_changed.pull == [edited]


def test_plan_flags_conflict_when_both_sides_changed():
    base = record("a", name="Oak", cost=1)
    local = record("a", name="Oak", cost=2)
    remote = record("a", name="Ash", cost=1)
    plan = plan_reconciliation("materials", {"a": local}, {"a": remote}, {"a": fingerprint(base)})

    [conflict] = plan.conflicts
    assert conflict.changed_fields == ["cost", "name"]
    assert plan.synced == {}


def test_plan_without_baseline_and_different_copies_is_a_conflict():
    plan = plan_reconciliation("materials", {"a": record("a", cost=1)}, {"a": record("a", cost=2)}, {})
    assert len(plan.conflicts) == 1

    plan = plan_reconciliation(
        "materials", {"a": record("a", cost=1)}, {"a": record("a", cost=2)}, {}, detect_conflicts=False
    )
    assert plan.pull == [record("a", cost=2)]


def test_plan_uses_defaults_as_baseline():
    default = record("shop", name="My Workshop")
    cloud = record("shop", name="Cloud Shop")
    defaults = {"shop": fingerprint(default)}

    plan = plan_reconciliation("shop", {"shop": default}, {"shop": cloud}, {}, defaults=defaults)
    assert plan.pull == [cloud]

    plan = plan_reconciliation("shop", {"shop": default}, {}, {}, defaults=defaults)
    assert plan.push == [] and plan.synced == {}


def test_plan_handles_deletions():
    kept = record("a", name="Oak")
    baseline = {"a": fingerprint(kept)}

    assert plan_reconciliation("materials", {"a": kept}, {}, baseline).drop_local == ["a"]
    assert plan_reconciliation("materials", {}, {"a": kept}, baseline).delete_remote == ["a"]
    assert plan_reconciliation("materials", {}, {"a": kept}, {}).pull == [kept]
