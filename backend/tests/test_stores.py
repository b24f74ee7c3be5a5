import asyncio

import pytest

from makercost.core.exceptions import ValidationError
from makercost.core.local_storage import save_snapshot
from makercost.schemas.pricing import MaterialCategory
from makercost.schemas.subscription import SubscriptionTier
from makercost.stores import MachinesStore, MaterialsStore, ProjectStore, ShopStore, SubscriptionStore
from makercost.stores.machines import DEMO_MACHINE


@pytest.fixture
def materials(store_args):
    store = MaterialsStore(*store_args)
    store.add_material({
        "name": "Walnut plank",
        "category": "Wood",
        "supplier": "Timber Co",
        "cost_per_unit": 12,
        "unit": "board",
        "current_stock": 3,
        "min_stock": 5,
        "waste_percentage": 10,
    })
    store.add_material({
        "name": "Gift box",
        "category": "Paper",
        "material_type": MaterialCategory.PACKAGING,
        "cost_per_unit": 1.5,
        "current_stock": 40,
        "min_stock": 10,
        "comments": "kraft, fits small boards",
    })
    return store


# ============= MATERIALS =============

def test_material_search_matches_several_fields(materials):
    assert [m.name for m in materials.search("walnut")] == ["Walnut plank"]
    assert [m.name for m in materials.search("timber")] == ["Walnut plank"]
    assert [m.name for m in materials.search("KRAFT")] == ["Gift box"]
    assert len(materials.search("  ")) == 2


def test_material_filters_and_stock_queries(materials):
    assert [m.name for m in materials.filter_by_category("Paper")] == ["Gift box"]
    assert [m.name for m in materials.filter_by_type(MaterialCategory.PACKAGING)] == ["Gift box"]
    assert [m.name for m in materials.low_stock()] == ["Walnut plank"]
    assert materials.total_value() == pytest.approx(12 * 3 + 1.5 * 40)


def test_material_converts_to_cost_material(materials):
    walnut = materials.search("walnut")[0]
    cost_material = materials.to_cost_material(walnut.id, quantity_used=2)

    assert cost_material.name == "Walnut plank"
    assert cost_material.unit == "board"
    assert cost_material.cost_per_unit == 12
    assert cost_material.waste_percent == 10
    assert cost_material.id != walnut.id
    assert materials.to_cost_material("missing") is None


def test_record_usage_never_goes_below_zero(materials, clock):
    walnut = materials.search("walnut")[0]
    updated = materials.record_usage(walnut.id, "project-1", "Shelf", quantity_used=7)

    assert updated.current_stock == 0
    [usage] = updated.usage_history
    assert usage.quantity_used == 7
    assert usage.cost_at_time == 12
    assert usage.date_used == clock.now()
    assert materials.record_usage("missing", "project-1", "Shelf", 1) is None


def test_invalid_material_is_rejected(materials):
    with pytest.raises(ValidationError):
        materials.add_material({"name": "Bad", "cost_per_unit": -1})
    with pytest.raises(ValidationError):
        materials.update_material(materials.all()[0].id, {"no_such_field": 1})
    assert len(materials) == 2


def test_update_unknown_material_returns_none(materials):
    assert materials.update_material("missing", {"cost_per_unit": 3}) is None
    assert materials.remove_material("missing") is False


def test_listener_unsubscribe(materials):
    seen = []
    unsubscribe = materials.subscribe(seen.append)
    walnut = materials.search("walnut")[0]

    materials.update_material(walnut.id, {"cost_per_unit": 14})
    unsubscribe()
    materials.remove_material(walnut.id)

    assert len(seen) == 1
    assert seen[0]["items"][0]["cost_per_unit"] == 14


def test_materials_restore_and_discard_invalid_snapshot(store_args, materials, storage):
    restored = MaterialsStore(*store_args)
    assert {m.name for m in restored.all()} == {"Walnut plank", "Gift box"}

    save_snapshot(storage, "user-materials", 1, {"items": [{"name": "Bad", "cost_per_unit": -5}]})
    assert len(MaterialsStore(*store_args)) == 0


async def test_is_loading_until_every_remote_call_finishes(store_args, adapter):
    store = MaterialsStore(*store_args)
    assert store.is_loading is False

    adapter.delay = 0.02
    fast = asyncio.create_task(store.save_to_database({"id": "a", "name": "Oak"}))
    await asyncio.sleep(0)
    adapter.delay = 0.08
    slow = asyncio.create_task(store.save_to_database({"id": "b", "name": "Ash"}))
    await asyncio.sleep(0)

    await fast
    assert store.is_loading is True
    await slow
    assert store.is_loading is False


# ============= MACHINES =============

def test_machines_start_with_demo_machine(store_args):
    machines = MachinesStore(*store_args)

    assert DEMO_MACHINE["id"] in machines
    calculator_machine = machines.to_calculator_machine(DEMO_MACHINE["id"], usage_hours=3)
    assert calculator_machine.usage_hours == 3
    assert calculator_machine.purchase_price == 25000
    assert calculator_machine.id != DEMO_MACHINE["id"]


def test_add_machine_assigns_id(store_args, clock):
    machines = MachinesStore(*store_args)
    laser = machines.add_machine({"name": "Laser", "power_consumption": 0.1})

    assert laser.id.startswith("id-")
    assert len(machines) == 2
    assert machines.update_machine(laser.id, {"name": "Laser 60W"}).name == "Laser 60W"


# ============= SHOP =============

def test_shop_defaults_and_overhead(store_args):
    shop = ShopStore(*store_args)

    assert shop.get().name == "My Workshop"
    assert shop.monthly_overhead() == 4000
    assert shop.cost_context().electricity_rate == 0.12
    assert shop.cost_context("none").electricity_rate == 0


def test_shop_operating_hours_drive_monthly_hours(store_args):
    shop = ShopStore(*store_args)

    updated = shop.update_shop_data({"operating_hours": 10})
    assert updated.total_monthly_hours == 220

    updated = shop.update_shop_data({"operating_days": 20})
    assert updated.total_monthly_hours == 200
    assert shop.hourly_overhead() == pytest.approx(4000 / 200)


def test_shop_migrates_version_one_snapshot(store_args, storage):
    legacy = {
        "name": "Old Shop",
        "rent": 1800,
        "electricity": 200,
        "software": 50,
        "internet": 40,
        "accounting": 100,
        "insurance": 90,
        "marketing": 60,
        "other_expenses": 30,
        "operating_hours": 6,
        "operating_days": 20,
    }
    save_snapshot(storage, "shop-store", 1, {"shop_data": legacy})

    shop = ShopStore(*store_args).get()

    assert shop.name == "Old Shop"
    assert shop.rent_lease == 1800
    assert shop.utilities == 200
    assert shop.digital_infrastructure == 90
    assert shop.insurance_professional == 190
    assert shop.marketing_advertising == 60
    assert shop.miscellaneous_contingency == 30
    assert shop.total_monthly_hours == 120


def test_shop_snapshot_from_unknown_version_is_discarded(store_args, storage):
    save_snapshot(storage, "shop-store", 7, {"value": {"name": "Future Shop"}})

    assert ShopStore(*store_args).get().name == "My Workshop"


def test_shop_export_header(store_args):
    shop = ShopStore(*store_args)
    shop.update_shop_data({"name": "Oak & Iron", "email": "hi@oak.example"})

    header = shop.export_header()
    assert header["business_name"] == "Oak & Iron"
    assert header["email"] == "hi@oak.example"
    assert header["footer"] is None


# ============= SUBSCRIPTION =============

def test_free_tier_limits(store_args):
    subscription = SubscriptionStore(*store_args)
    subscription.set_usage(project_count=5, material_count=10)

    assert subscription.tier == SubscriptionTier.FREE
    assert subscription.has_reached_limit("projects") is True
    assert subscription.has_reached_limit("materials") is False
    assert subscription.get_remaining_usage("materials") == 40
    assert subscription.has_feature_access("can_export_excel") is False
    assert subscription.has_feature_access("max_projects") is True
    assert subscription.has_feature_access("unknown_feature") is False


def test_paid_tier_is_unlimited(store_args):
    subscription = SubscriptionStore(*store_args)
    subscription.set_usage(project_count=500, material_count=500)
    subscription.update_tier(SubscriptionTier.PRO)

    assert subscription.has_reached_limit("projects") is False
    assert subscription.get_remaining_usage("projects") == -1
    assert subscription.has_feature_access("has_cloud_sync") is True


# ============= PROJECT =============

async def test_project_edits_stay_local(store_args, adapter):
    project = ProjectStore(*store_args)
    assert project.has_minimal_content() is False

    project.set_project_info(project_name="Shelf", client_name="Dana")
    project.add_material({"name": "Oak", "quantity_used": 2, "cost_per_unit": 10})
    project.set_labor({"hours": 1, "rate_per_hour": 30})
    await project.wait_idle()

    assert project.has_minimal_content() is True
    assert project.calculate().subtotal_cost == 50
    assert adapter.calls == []


def test_project_material_edits(store_args):
    project = ProjectStore(*store_args)
    oak = project.add_material({"name": "Oak", "quantity_used": 2, "cost_per_unit": 10})

    assert project.update_material(oak.id, {"quantity_used": 3}).quantity_used == 3
    assert project.update_material("missing", {"quantity_used": 3}) is None
    assert project.remove_material(oak.id) is True
    assert project.remove_material(oak.id) is False
    assert project.has_minimal_content() is False


def test_new_project_keeps_currency_unless_given(store_args):
    project = ProjectStore(*store_args)
    project.set_project_info(project_name="Old", currency="EUR")

    fresh = project.new_project()
    assert fresh.project_name == ""
    assert fresh.currency == "EUR"
    assert project.new_project("GBP").currency == "GBP"
