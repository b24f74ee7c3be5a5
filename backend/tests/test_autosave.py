import logging

import pytest

from makercost.core.identity import IdentityProvider
from makercost.schemas.pricing import CostContext
from makercost.services.autosave import AutosaveController
from makercost.stores import ProjectStore, QuoteStore


@pytest.fixture
def project(store_args):
    return ProjectStore(*store_args)


@pytest.fixture
def quotes(store_args):
    return QuoteStore(*store_args)


@pytest.fixture
def make_autosave(project, quotes, identity, clock):
    def make(**kwargs):
        options = dict(identity=identity, interval=0.02, clock=clock)
        options.update(kwargs)
        return AutosaveController(project, quotes, **options)
    return make


@pytest.fixture
def autosave(make_autosave):
    return make_autosave()


def fill(project):
    project.set_project_info(project_name="Kitchen Shelf", client_name="Dana")
    project.add_material({"name": "Oak", "quantity_used": 2, "cost_per_unit": 10})
    project.set_sale_price({"amount": 80})


async def test_repeated_save_with_unchanged_project_is_skipped(autosave, project, quotes, adapter):
    fill(project)

    first = await autosave.save()
    second = await autosave.save()

    assert first is not None
    assert second is None
    assert len(quotes) == 1
    assert adapter.count("save", "quotes") == 1
    assert autosave.save_count == 1


async def test_empty_project_is_never_saved(autosave, quotes, adapter):
    assert await autosave.save() is None
    assert len(quotes) == 0
    assert adapter.calls == []


async def test_empty_project_can_be_saved_when_content_not_required(make_autosave, quotes):
    autosave = make_autosave(require_minimal_content=False)

    assert await autosave.save() is not None
    assert len(quotes) == 1


async def test_draft_carries_project_product(autosave, project, quotes):
    fill(project)

    quote = await autosave.save()

    assert quote.project_name == "Kitchen Shelf"
    assert quote.client_name == "Dana"
    [line] = quote.products
    assert line.id == project.get().id
    assert line.breakdown.material_cost == 20
    assert quote.total_amount == 80
    assert quotes.current_quote_id == quote.id


async def test_later_saves_update_the_same_draft(autosave, project, quotes):
    fill(project)
    first = await autosave.save()

    project.set_sale_price({"amount": 120})
    second = await autosave.save()

    assert second.id == first.id
    assert second.total_amount == 120
    assert len(quotes) == 1
    assert len(second.products) == 1


async def test_rapid_changes_produce_one_save(autosave, project, adapter):
    autosave.start()

    fill(project)
    project.set_labor({"hours": 1, "rate_per_hour": 20})
    assert autosave.pending is True
    await autosave.wait()

    assert autosave.save_count == 1
    assert adapter.count("save", "quotes") == 1
    autosave.stop()


async def test_changes_without_content_do_not_schedule(autosave, project):
    autosave.start()

    project.set_vat_settings({"rate": 20})

    assert autosave.pending is False
    autosave.stop()


async def test_save_now_cancels_pending_save(autosave, project):
    autosave.start()
    fill(project)
    assert autosave.pending is True

    quote = await autosave.save_now()
    await autosave.wait()

    assert quote is not None
    assert autosave.pending is False
    assert autosave.save_count == 1
    autosave.stop()


async def test_stop_detaches_from_project(autosave, project):
    autosave.start()
    autosave.stop()

    fill(project)

    assert autosave.pending is False


async def test_remote_failure_is_quiet(autosave, project, quotes, adapter, notifier, caplog):
    fill(project)
    adapter.fail_with = "offline"

    with caplog.at_level(logging.WARNING):
        quote = await autosave.save()

    assert quote is not None
    assert quotes.get_by_id(quote.id) is not None
    assert quotes.last_error == "offline"
    assert notifier.messages == []
    assert "remote_failed" in caplog.text


async def test_signed_out_autosave_stays_local(project, quotes, adapter, clock):
    autosave = AutosaveController(project, quotes, IdentityProvider(), interval=0.02, clock=clock)
    fill(project)

    quote = await autosave.save()

    assert quote is not None
    assert adapter.calls == []


async def test_cost_context_change_triggers_new_save(make_autosave, project):
    context = CostContext(shop_hourly_overhead=0)
    autosave = make_autosave(context_provider=lambda: context)
    fill(project)
    project.set_overhead({"method": "shop_share"})
    project.set_labor({"hours": 2, "rate_per_hour": 20})

    first = await autosave.save()
    assert first.products[0].breakdown.overhead_cost == 0

    context = CostContext(shop_hourly_overhead=10)
    second = await autosave.save()

    assert second is not None
    assert second.products[0].breakdown.overhead_cost == 20
