import logging
import re

import pytest

from makercost.core.identity import IdentityProvider
from makercost.schemas.pricing import Currency, LaborInput, PricingProject, SalePriceInfo
from makercost.schemas.quote import DiscountInfo, QuoteStatus, ShippingInfo
from makercost.services.quote_aggregate import quote_product_from_product
from makercost.stores.base import fingerprint
from makercost.stores.quotes import QuoteStore


@pytest.fixture
def quotes(store_args):
    return QuoteStore(*store_args)


@pytest.fixture
def project(make_product):
    source = make_product()
    return PricingProject(
        id="project-1",
        project_name="Kitchen Shelf",
        client_name="Dana",
        materials=source.materials,
        labor=source.labor,
        overhead=source.overhead,
        sale_price=source.sale_price,
    )


def test_create_quote_selects_it(quotes):
    quote = quotes.create_quote("Kitchen Shelf", "Dana")

    assert re.fullmatch(r"Q250314-\d{3}", quote.quote_number)
    assert quote.status == QuoteStatus.DRAFT
    assert quote.total_amount == 0
    assert quotes.current_quote.id == quote.id


def test_find_or_create_draft_is_idempotent(quotes):
    first = quotes.find_or_create_draft_quote("Kitchen Shelf", "Dana", Currency.USD)
    second = quotes.find_or_create_draft_quote("Kitchen Shelf", "Dana", Currency.USD)

    assert first.id == second.id
    assert len(quotes) == 1


def test_find_or_create_draft_ignores_other_currencies_and_saved_quotes(quotes, clock):
    euro = quotes.create_quote("Euro job", "Client", Currency.EUR)
    saved = quotes.create_quote("Saved job", "Client", Currency.USD)
    quotes.finalize_quote(saved.id)

    draft = quotes.find_or_create_draft_quote("New job", "Client", Currency.USD)

    assert draft.id not in (euro.id, saved.id)
    assert len(quotes) == 3


def test_find_or_create_draft_prefers_most_recent(quotes, clock):
    older = quotes.create_quote("Older", "Client")
    clock.advance(60)
    newer = quotes.create_quote("Newer", "Client")

    assert quotes.find_or_create_draft_quote("x", "y").id == newer.id
    clock.advance(60)
    quotes.update_quote_discount(older.id, DiscountInfo(type="fixed", amount=1))
    assert quotes.find_or_create_draft_quote("x", "y").id == older.id


def test_add_product_without_quote_creates_one(quotes, make_product, clock):
    line = quote_product_from_product(make_product(), clock=clock)
    quote = quotes.add_product_to_quote(line)

    assert quote.project_name == "Walnut Board"
    assert quote.client_name == "Client Name"
    assert quote.total_amount == 100
    assert len(quotes) == 1


def test_adjustments_recompute_total(quotes, make_product, clock):
    quote = quotes.create_quote("Job", "Client")
    quotes.add_product_to_quote(quote_product_from_product(make_product(id="a"), clock=clock), quote.id)
    quotes.add_product_to_quote(quote_product_from_product(make_product(id="b"), clock=clock), quote.id)

    quotes.update_quote_discount(quote.id, DiscountInfo(type="percentage", amount=10))
    updated = quotes.update_quote_shipping(quote.id, ShippingInfo(charge_to_customer=15))
    assert updated.total_amount == pytest.approx(195)

    updated = quotes.remove_product_from_quote("b", quote.id)
    assert updated.total_amount == pytest.approx(105)

    updated = quotes.update_quote_discount(quote.id, None)
    assert updated.total_amount == pytest.approx(115)


def test_status_is_a_free_field(quotes, clock):
    quote = quotes.create_quote("Job", "Client")

    completed = quotes.mark_quote_as_completed(quote.id)
    assert completed.status == QuoteStatus.COMPLETED
    assert completed.finalized_at == clock.now()

    reopened = quotes.update_quote_status(quote.id, QuoteStatus.DRAFT)
    assert reopened.status == QuoteStatus.DRAFT

    assert quotes.finalize_quote(quote.id).status == QuoteStatus.SAVED
    assert [q.id for q in quotes.get_quotes_by_status(QuoteStatus.SAVED)] == [quote.id]


def test_unknown_quote_updates_return_none(quotes):
    assert quotes.update_quote_status("missing", QuoteStatus.SAVED) is None
    assert quotes.update_quote_discount("missing", DiscountInfo()) is None
    assert quotes.update_quote_shipping("missing", ShippingInfo()) is None
    assert quotes.remove_product_from_quote("p", "missing") is None


def test_update_from_project_replaces_its_product(quotes, project):
    draft = quotes.find_or_create_draft_quote(project.project_name, project.client_name)

    first = quotes.update_quote_from_project(draft.id, project)
    assert [p.id for p in first.products] == ["project-1"]
    assert first.total_amount == 100

    changed = project.model_copy(update={"sale_price": SalePriceInfo(amount=150)})
    second = quotes.update_quote_from_project(draft.id, changed)
    assert [p.id for p in second.products] == ["project-1"]
    assert second.total_amount == 150
    assert second.project_name == "Kitchen Shelf"


def test_update_from_project_on_deleted_quote_is_logged(quotes, project, caplog):
    quote = quotes.create_quote("Job", "Client")
    quotes.delete_quote(quote.id)

    with caplog.at_level(logging.WARNING):
        assert quotes.update_quote_from_project(quote.id, project) is None
    assert "no longer exists" in caplog.text
    assert quotes.current_quote is None


def test_returned_quotes_are_copies(quotes):
    quote = quotes.create_quote("Job", "Client")
    copy = quotes.get_by_id(quote.id)
    copy.project_name = "Changed outside"

    assert quotes.get_by_id(quote.id).project_name == "Job"


def test_quotes_restore_from_snapshot(store_args, quotes):
    quote = quotes.create_quote("Job", "Client")

    restored = QuoteStore(*store_args)

    assert restored.get_by_id(quote.id) == quotes.get_by_id(quote.id)
    assert restored.current_quote_id == quote.id


def test_listeners_see_every_mutation(quotes):
    seen = []
    unsubscribe = quotes.subscribe(seen.append)

    quote = quotes.create_quote("Job", "Client")
    quotes.update_quote_status(quote.id, QuoteStatus.SAVED)
    unsubscribe()
    quotes.delete_quote(quote.id)

    assert len(seen) == 2
    assert seen[-1]["items"][0]["status"] == "saved"


async def test_mutation_is_mirrored_and_becomes_baseline(quotes, adapter):
    quote = quotes.create_quote("Job", "Client")
    await quotes.wait_idle()

    stored = adapter.records("quotes")[quote.id]
    assert stored["quote_number"] == quote.quote_number
    assert quotes.baseline[quote.id] == fingerprint(stored)
    assert quotes.last_error is None


async def test_remote_failure_keeps_local_change(quotes, adapter, notifier):
    adapter.fail_with = "connection reset"
    quote = quotes.create_quote("Job", "Client")
    await quotes.wait_idle()

    assert quotes.get_by_id(quote.id) is not None
    assert quotes.last_error == "connection reset"
    assert notifier.severities() == ["error"]
    assert quote.id not in quotes.baseline


async def test_signed_out_mutations_stay_local_quietly(adapter, notifier, storage, clock):
    adapter.identity = IdentityProvider()
    quotes = QuoteStore(adapter, notifier, storage, clock)

    quotes.create_quote("Job", "Client")
    await quotes.wait_idle()

    assert len(quotes) == 1
    assert quotes.last_error == "User not authenticated"
    assert notifier.messages == []


async def test_failed_remote_delete_is_a_warning(quotes, adapter, notifier):
    quote = quotes.create_quote("Job", "Client")
    await quotes.wait_idle()

    adapter.fail_with = "timeout"
    assert quotes.delete_quote(quote.id) is True
    await quotes.wait_idle()

    assert quotes.get_by_id(quote.id) is None
    assert notifier.severities() == ["warning"]


async def test_load_from_database_replaces_local_state(quotes, adapter):
    kept = quotes.create_quote("Cloud job", "Client")
    await quotes.wait_idle()
    local_only = quotes.create_quote("Local job", "Client")
    adapter.fail_with = "offline"
    await quotes.wait_idle()
    adapter.fail_with = None

    loaded = await quotes.load_from_database()

    assert [record["id"] for record in loaded] == [kept.id]
    assert quotes.get_by_id(local_only.id) is None
    assert set(quotes.baseline) == {kept.id}


def test_labor_edit_on_project_changes_quote(quotes, project):
    draft = quotes.find_or_create_draft_quote(project.project_name, project.client_name)
    quotes.update_quote_from_project(draft.id, project)
    pricier = project.model_copy(update={"labor": LaborInput(hours=4, rate_per_hour=25)})

    updated = quotes.update_quote_from_project(draft.id, pricier)

    assert updated.products[0].breakdown.labor_cost == 100
    assert updated.total_amount == 100
