"""
Quote-level totals and product snapshots.

The quote subtotal is the sum of each product's gross revenue (sale price as
entered, plus fixed charges). Discount is taken off that subtotal and the
shipping charge is added unless shipping is free. Totals never go below zero;
when clamping happens the result carries ``clamped=True``.
"""
from typing import Iterable, Optional, Sequence, Set
import logging
import random

from makercost.core.clock import Clock
from makercost.schemas.pricing import CostContext, Currency, PricingProject, Product
from makercost.schemas.quote import DiscountInfo, Quote, QuoteProduct, QuoteTotals, ShippingInfo
from makercost.services.pricing_engine import calculate_product_breakdown

logger = logging.getLogger(__name__)


def calculate_discount_amount(subtotal: float, discount: Optional[DiscountInfo]) -> float:
    if discount is None:
        return 0.0
    if discount.type == "percentage":
        return subtotal * discount.amount / 100
    return discount.amount


def calculate_shipping_amount(shipping: Optional[ShippingInfo]) -> float:
    if shipping is None or shipping.is_free_shipping:
        return 0.0
    return shipping.charge_to_customer


def compute_quote_totals(
    products: Sequence[QuoteProduct],
    discount: Optional[DiscountInfo] = None,
    shipping: Optional[ShippingInfo] = None
) -> QuoteTotals:
    subtotal = sum((product.total_price for product in products), 0.0)
    discount_amount = calculate_discount_amount(subtotal, discount)
    shipping_amount = calculate_shipping_amount(shipping)

    total = subtotal - discount_amount + shipping_amount
    clamped = total < 0
    if clamped:
        logger.warning(
            f"Quote total {total:.2f} is negative (subtotal {subtotal:.2f}, "
            f"discount {discount_amount:.2f}); clamped to 0"
        )
        total = 0.0

    return QuoteTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        shipping_amount=shipping_amount,
        total_amount=total,
        clamped=clamped,
    )


def compute_quote_total(quote: Quote) -> float:
    """Total amount recomputed from products, discount and shipping"""
    return compute_quote_totals(quote.products, quote.discount, quote.shipping).total_amount


def with_totals(quote: Quote) -> Quote:
    """Copy of ``quote`` with its cached totals refreshed"""
    totals = compute_quote_totals(quote.products, quote.discount, quote.shipping)
    return quote.model_copy(update={
        "subtotal": totals.subtotal,
        "discount_amount": totals.discount_amount,
        "shipping_amount": totals.shipping_amount,
        "total_amount": totals.total_amount,
        "total_clamped": totals.clamped,
    })


def quote_product_from_product(
    product: Product,
    currency: Currency = Currency.USD,
    context: Optional[CostContext] = None,
    clock: Optional[Clock] = None
) -> QuoteProduct:
    """
    Snapshot a product as a quote line.

    Inputs are copied by value; the price comes from the computed revenue so
    fixed charges are included.
    """
    clock = clock or Clock()
    product = product.model_copy(deep=True)
    breakdown = calculate_product_breakdown(product, context)
    units = product.sale_price.units_count
    return QuoteProduct(
        id=product.id,
        product_name=product.product_name,
        quantity=units,
        unit_price=breakdown.revenue / units,
        total_price=breakdown.revenue,
        breakdown=breakdown,
        materials=product.materials,
        machines=product.machines,
        labor=product.labor,
        overhead=product.overhead,
        sale_price=product.sale_price,
        vat_settings=product.vat_settings,
        currency=currency,
        added_at=clock.now(),
    )


def build_quote_product(
    project: PricingProject,
    context: Optional[CostContext] = None,
    product_id: Optional[str] = None,
    clock: Optional[Clock] = None
) -> QuoteProduct:
    """Snapshot the edited project; the product keeps the project's id"""
    product = project.to_product(product_id=product_id or project.id)
    return quote_product_from_product(product, project.currency, context, clock)


class QuoteNumberGenerator:
    """
    Issues ``QYYMMDD-NNN`` quote numbers.

    The suffix is random; numbers already issued or already in use are
    skipped. When every three digit suffix for the day is taken the suffix
    grows to four digits.
    """

    def __init__(self, clock: Optional[Clock] = None, rng: Optional[random.Random] = None, max_attempts: int = 50):
        self.clock = clock or Clock()
        self.rng = rng or random.Random()
        self.max_attempts = max_attempts
        self._issued: Set[str] = set()

    def _prefix(self) -> str:
        return self.clock.now().strftime("Q%y%m%d")

    def generate(self, existing: Iterable[str] = ()) -> str:
        taken = self._issued | set(existing)
        prefix = self._prefix()

        for _ in range(self.max_attempts):
            candidate = f"{prefix}-{self.rng.randint(0, 999):03d}"
            if candidate not in taken:
                return self._issue(candidate)

        logger.info(f"Quote number collisions for {prefix}, scanning for a free suffix")
        suffix = 0
        while True:
            candidate = f"{prefix}-{suffix:03d}"
            if candidate not in taken:
                return self._issue(candidate)
            suffix += 1

    def _issue(self, number: str) -> str:
        self._issued.add(number)
        return number
