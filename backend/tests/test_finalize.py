import pytest

from makercost.schemas.pricing import VATSettings
from makercost.schemas.quote import CustomerType, DiscountInfo, Quote, ShippingInfo
from makercost.services.finalize import build_finalized_view
from makercost.services.quote_aggregate import quote_product_from_product, with_totals


@pytest.fixture
def exclusive_quote(make_product, clock):
    product = make_product(vat_settings=VATSettings(rate=20, is_inclusive=False))
    line = quote_product_from_product(product, clock=clock)
    return with_totals(Quote(quote_number="Q250314-100", products=[line]))


def test_private_view_shows_vat_inclusive_total(exclusive_quote):
    view = build_finalized_view(exclusive_quote, CustomerType.PRIVATE)

    assert view.totals.grand_total_inc_vat == pytest.approx(120)
    assert view.totals.vat_info_amount == pytest.approx(20)
    assert view.totals.vat_info_net_amount == pytest.approx(100)
    assert view.totals.subtotal_ex_vat is None


def test_business_view_lists_vat_separately(exclusive_quote):
    view = build_finalized_view(exclusive_quote, CustomerType.BUSINESS)

    assert view.totals.subtotal_ex_vat == pytest.approx(100)
    assert view.totals.vat_amount == pytest.approx(20)
    assert view.totals.total_inc_vat == pytest.approx(120)
    assert view.totals.grand_total_inc_vat is None
    [item] = view.line_items
    assert item.unit_price_ex_vat == pytest.approx(100)
    assert item.line_total_inc_vat == pytest.approx(120)


def test_discount_and_shipping_split_by_vat(exclusive_quote):
    quote = exclusive_quote.model_copy(update={
        "discount": DiscountInfo(type="percentage", amount=10),
        "shipping": ShippingInfo(cost=8, charge_to_customer=12, includes_vat=False),
    })
    view = build_finalized_view(quote, CustomerType.BUSINESS)

    assert view.discount.applied_amount_ex_vat == pytest.approx(10)
    assert view.discount.applied_amount_inc_vat == pytest.approx(12)
    assert view.shipping_line.charge_ex_vat == pytest.approx(12)
    assert view.shipping_line.charge_inc_vat == pytest.approx(14.4)
    assert view.shipping_line.cost_inc_vat == pytest.approx(9.6)
    assert view.totals.shipping_ex_vat == pytest.approx(12)
    assert view.totals.discount_ex_vat == pytest.approx(10)
    assert view.totals.total_inc_vat == pytest.approx(122.4)
    assert view.totals.vat_amount == pytest.approx(20.4)


def test_inclusive_prices_are_not_taxed_twice(make_product, clock):
    product = make_product(vat_settings=VATSettings(rate=20, is_inclusive=True))
    product = product.model_copy(update={"sale_price": product.sale_price.model_copy(update={"amount": 120})})
    quote = Quote(quote_number="Q250314-101", products=[quote_product_from_product(product, clock=clock)])

    view = build_finalized_view(quote, CustomerType.PRIVATE)

    assert view.totals.grand_total_inc_vat == pytest.approx(120)
    assert view.totals.vat_info_amount == pytest.approx(20)
    assert view.line_items[0].line_total_ex_vat == pytest.approx(100)


def test_free_shipping_charges_nothing(exclusive_quote):
    quote = exclusive_quote.model_copy(update={
        "shipping": ShippingInfo(cost=8, charge_to_customer=12, is_free_shipping=True),
    })
    view = build_finalized_view(quote, CustomerType.PRIVATE)

    assert view.shipping_line.is_free_shipping is True
    assert view.shipping_line.charge_inc_vat == 0
    assert view.totals.grand_total_inc_vat == pytest.approx(120)


def test_empty_quote_has_zero_totals():
    view = build_finalized_view(Quote(quote_number="Q250314-102"), CustomerType.BUSINESS)

    assert view.line_items == []
    assert view.totals.subtotal_ex_vat == 0
    assert view.totals.total_inc_vat == 0
    assert view.totals.vat_amount == 0
