from typing import Any, Dict, List, Optional
from datetime import datetime
import logging

from makercost.schemas.pricing import CostContext, Currency, PricingProject
from makercost.schemas.quote import DiscountInfo, Quote, QuoteProduct, QuoteStatus, ShippingInfo
from makercost.services.quote_aggregate import QuoteNumberGenerator, build_quote_product, with_totals
from makercost.stores.base import CollectionStore
from makercost.utils.validators import validate_model

logger = logging.getLogger(__name__)


class QuoteStore(CollectionStore[Quote]):
    """
    Quotes plus the currently selected quote.

    Every mutation recomputes the cached totals, whatever the status.
    """

    name = "quote-store"
    entity = "quotes"
    model = Quote

    _number_generator: Optional[QuoteNumberGenerator] = None

    def _reset_state(self) -> None:
        super()._reset_state()
        self.current_quote_id: Optional[str] = None

    def _dump_state(self) -> Dict[str, Any]:
        return {**super()._dump_state(), "current_quote_id": self.current_quote_id}

    def _load_state(self, state: Dict[str, Any]) -> None:
        super()._load_state(state)
        current = state.get("current_quote_id")
        self.current_quote_id = current if current in self._items else None

    def _drop_record(self, record_id: str) -> None:
        super()._drop_record(record_id)
        if self.current_quote_id == record_id:
            self.current_quote_id = None

    @property
    def number_generator(self) -> QuoteNumberGenerator:
        if self._number_generator is None:
            self._number_generator = QuoteNumberGenerator(self.clock)
        return self._number_generator

    @number_generator.setter
    def number_generator(self, generator: QuoteNumberGenerator) -> None:
        self._number_generator = generator

    def _save_quote(self, quote: Quote, mirror: bool = True) -> Quote:
        quote = with_totals(quote).model_copy(update={"updated_at": self.clock.now()})
        return self._store(quote, mirror=mirror)

    def _resolve(self, quote_id: Optional[str]) -> Optional[Quote]:
        target = quote_id or self.current_quote_id
        return self._items.get(target) if target else None

    # ============= QUERIES =============

    @property
    def current_quote(self) -> Optional[Quote]:
        return self.get_by_id(self.current_quote_id) if self.current_quote_id else None

    def get_quotes_by_status(self, status: QuoteStatus) -> List[Quote]:
        return [quote for quote in self.all() if quote.status == status]

    # ============= LIFECYCLE =============

    def create_quote(
        self,
        project_name: str,
        client_name: str,
        currency: Currency = Currency.USD,
        delivery_date: Optional[datetime] = None,
        payment_terms: Optional[str] = None,
        mirror: bool = True
    ) -> Quote:
        now = self.clock.now()
        number = self.number_generator.generate(q.quote_number for q in self._items.values())
        quote = validate_model(Quote, {
            "id": self.clock.new_id(),
            "quote_number": number,
            "project_name": project_name,
            "client_name": client_name,
            "currency": currency,
            "delivery_date": delivery_date,
            "payment_terms": payment_terms,
            "created_at": now,
            "updated_at": now,
        })
        self.current_quote_id = quote.id
        logger.info(f"Created quote {quote.quote_number}")
        return self._save_quote(quote, mirror=mirror)

    def set_current_quote(self, quote_id: Optional[str]) -> None:
        if quote_id is not None and quote_id not in self._items:
            logger.warning(f"Cannot select unknown quote {quote_id}")
            return
        self.current_quote_id = quote_id
        self._commit()

    def reset_current_quote(self) -> None:
        self.set_current_quote(None)

    def delete_quote(self, quote_id: str) -> bool:
        if self.current_quote_id == quote_id:
            self.current_quote_id = None
        return self.remove(quote_id)

    # ============= PRODUCTS =============

    def add_product_to_quote(self, product: QuoteProduct, quote_id: Optional[str] = None) -> Quote:
        """Append a product; creates a quote when there is no target"""
        quote = self._resolve(quote_id)
        if quote is None:
            created = self.create_quote(product.product_name or "New Project", "Client Name", product.currency)
            quote = self._items[created.id]
        products = [*quote.products, product.model_copy(deep=True)]
        return self._save_quote(quote.model_copy(update={"products": products}))

    def remove_product_from_quote(self, product_id: str, quote_id: Optional[str] = None) -> Optional[Quote]:
        quote = self._resolve(quote_id)
        if quote is None:
            return None
        products = [p for p in quote.products if p.id != product_id]
        return self._save_quote(quote.model_copy(update={"products": products}))

    # ============= PRICING ADJUSTMENTS =============

    def update_quote_discount(self, quote_id: str, discount: Optional[DiscountInfo]) -> Optional[Quote]:
        quote = self._items.get(quote_id)
        if quote is None:
            return None
        discount = validate_model(DiscountInfo, discount) if discount is not None else None
        return self._save_quote(quote.model_copy(update={"discount": discount}))

    def update_quote_shipping(self, quote_id: str, shipping: Optional[ShippingInfo]) -> Optional[Quote]:
        quote = self._items.get(quote_id)
        if quote is None:
            return None
        shipping = validate_model(ShippingInfo, shipping) if shipping is not None else None
        return self._save_quote(quote.model_copy(update={"shipping": shipping}))

    # ============= STATUS =============

    def update_quote_status(self, quote_id: str, status: QuoteStatus) -> Optional[Quote]:
        """Any status may follow any other; completing stamps ``finalized_at``"""
        quote = self._items.get(quote_id)
        if quote is None:
            return None
        status = QuoteStatus(status)
        finalized_at = self.clock.now() if status == QuoteStatus.COMPLETED else quote.finalized_at
        return self._save_quote(quote.model_copy(update={"status": status, "finalized_at": finalized_at}))

    def mark_quote_as_completed(self, quote_id: str) -> Optional[Quote]:
        return self.update_quote_status(quote_id, QuoteStatus.COMPLETED)

    def finalize_quote(self, quote_id: str) -> Optional[Quote]:
        quote = self.update_quote_status(quote_id, QuoteStatus.SAVED)
        if quote is not None:
            logger.info(f"Finalized quote {quote.quote_number} total={quote.total_amount:.2f}")
        return quote

    # ============= DRAFTS =============

    def find_or_create_draft_quote(
        self,
        project_name: str,
        client_name: str,
        currency: Currency = Currency.USD,
        mirror: bool = True
    ) -> Quote:
        """
        Most recently updated draft in ``currency``, or a new draft.

        Creation happens synchronously, so repeated calls with unchanged
        inputs return the same quote.
        """
        currency = Currency(currency)
        drafts = [
            quote for quote in self._items.values()
            if quote.status == QuoteStatus.DRAFT and quote.currency == currency
        ]
        if drafts:
            draft = max(drafts, key=lambda quote: quote.updated_at)
            if self.current_quote_id != draft.id:
                self.current_quote_id = draft.id
                self._commit()
            return draft.model_copy(deep=True)
        return self.create_quote(project_name, client_name, currency, mirror=mirror)

    def update_quote_from_project(
        self,
        quote_id: str,
        project: PricingProject,
        context: Optional[CostContext] = None,
        mirror: bool = True
    ) -> Optional[Quote]:
        """
        Replace the project's product inside the quote and recompute totals.

        A missing quote (deleted concurrently) is logged and skipped.
        """
        quote = self._items.get(quote_id)
        if quote is None:
            logger.warning(f"Quote {quote_id} no longer exists, project update skipped")
            return None

        product = build_quote_product(project, context, clock=self.clock)
        products = [p for p in quote.products if p.id != product.id]
        replaced_at = next((i for i, p in enumerate(quote.products) if p.id == product.id), len(products))
        products.insert(replaced_at, product)

        return self._save_quote(quote.model_copy(update={
            "project_name": project.project_name or quote.project_name,
            "client_name": project.client_name or quote.client_name,
            "currency": project.currency,
            "delivery_date": project.delivery_date,
            "payment_terms": project.payment_terms,
            "products": products,
        }), mirror=mirror)
