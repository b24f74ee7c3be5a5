"""
Customer-facing view of a quote.

Private customers see VAT-inclusive prices with the VAT shown for
information; business customers see ex-VAT amounts with VAT as its own line.
Discount and shipping use the VAT settings of the first product.
"""
from typing import Optional, Tuple

from makercost.schemas.pricing import VATSettings
from makercost.schemas.quote import (
    AppliedDiscount,
    CustomerType,
    FinalizedQuoteView,
    FinalizedTotals,
    Quote,
    QuoteLineItem,
    QuoteProduct,
    QuoteShippingLine,
)
from makercost.services.quote_aggregate import calculate_discount_amount, calculate_shipping_amount


def _split(amount: float, rate_percent: float, includes_vat: bool) -> Tuple[float, float]:
    """(ex-VAT, inc-VAT) for an amount entered with or without VAT"""
    rate = rate_percent / 100
    if includes_vat:
        return amount / (1 + rate), amount
    return amount, amount * (1 + rate)


def _line_item(product: QuoteProduct) -> QuoteLineItem:
    breakdown = product.breakdown
    if product.vat_settings.is_inclusive:
        line_ex, line_inc = breakdown.net_revenue, breakdown.revenue
    else:
        line_ex, line_inc = breakdown.revenue, breakdown.revenue + breakdown.vat_amount
    return QuoteLineItem(
        id=product.id,
        product_name=product.product_name,
        quantity=product.quantity,
        unit_price_ex_vat=line_ex / product.quantity,
        unit_price_inc_vat=line_inc / product.quantity,
        line_total_ex_vat=line_ex,
        line_total_inc_vat=line_inc,
    )


def quote_vat_settings(quote: Quote) -> VATSettings:
    return quote.products[0].vat_settings if quote.products else VATSettings()


def build_finalized_view(quote: Quote, customer_type: CustomerType) -> FinalizedQuoteView:
    vat = quote_vat_settings(quote)
    line_items = [_line_item(product) for product in quote.products]
    subtotal_ex = sum((item.line_total_ex_vat for item in line_items), 0.0)
    subtotal_inc = sum((item.line_total_inc_vat for item in line_items), 0.0)

    discount_view: Optional[AppliedDiscount] = None
    discount_ex = discount_inc = 0.0
    if quote.discount is not None:
        gross_subtotal = sum((product.total_price for product in quote.products), 0.0)
        amount = calculate_discount_amount(gross_subtotal, quote.discount)
        discount_ex, discount_inc = _split(amount, vat.rate, vat.is_inclusive)
        discount_view = AppliedDiscount(
            type=quote.discount.type,
            amount=quote.discount.amount,
            applied_amount_ex_vat=discount_ex,
            applied_amount_inc_vat=discount_inc,
        )

    shipping_line: Optional[QuoteShippingLine] = None
    shipping_ex = shipping_inc = 0.0
    if quote.shipping is not None:
        charge = calculate_shipping_amount(quote.shipping)
        shipping_ex, shipping_inc = _split(charge, vat.rate, quote.shipping.includes_vat)
        cost_ex, cost_inc = _split(quote.shipping.cost, vat.rate, quote.shipping.includes_vat)
        shipping_line = QuoteShippingLine(
            cost_ex_vat=cost_ex,
            cost_inc_vat=cost_inc,
            charge_ex_vat=shipping_ex,
            charge_inc_vat=shipping_inc,
            is_free_shipping=quote.shipping.is_free_shipping,
        )

    total_ex = max(0.0, subtotal_ex - discount_ex + shipping_ex)
    total_inc = max(0.0, subtotal_inc - discount_inc + shipping_inc)
    vat_amount = max(0.0, total_inc - total_ex)

    if customer_type == CustomerType.PRIVATE:
        totals = FinalizedTotals(
            grand_total_inc_vat=total_inc,
            vat_info_amount=vat_amount,
            vat_info_net_amount=total_ex,
        )
    else:
        totals = FinalizedTotals(
            subtotal_ex_vat=subtotal_ex,
            shipping_ex_vat=shipping_ex,
            discount_ex_vat=discount_ex,
            vat_amount=vat_amount,
            total_inc_vat=total_inc,
        )

    return FinalizedQuoteView(
        customer_type=customer_type,
        quote=quote,
        line_items=line_items,
        shipping_line=shipping_line,
        discount=discount_view,
        totals=totals,
    )
