from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import StreamingResponse
from typing import List, Optional
from io import BytesIO
import logging

from makercost.api.deps import get_workspace
from makercost.core.exceptions import QuoteNotFoundError
from makercost.core.workspace import Workspace
from makercost.schemas.pricing import Product
from makercost.schemas.quote import (
    CustomerType,
    DiscountInfo,
    FinalizedQuoteView,
    Quote,
    QuoteStatus,
    QuoteTotals,
    ShippingInfo,
)
from makercost.schemas.requests import QuoteCreate, QuoteStatusUpdate
from makercost.services.finalize import build_finalized_view
from makercost.services.quote_aggregate import compute_quote_totals, quote_product_from_product

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_quote(workspace: Workspace, quote_id: str) -> Quote:
    quote = workspace.quotes.get_by_id(quote_id)
    if quote is None:
        raise QuoteNotFoundError(quote_id)
    return quote


def _found(quote: Optional[Quote], quote_id: str) -> Quote:
    if quote is None:
        raise QuoteNotFoundError(quote_id)
    return quote


@router.get("/", response_model=List[Quote])
async def list_quotes(
    quote_status: Optional[QuoteStatus] = Query(None, alias="status"),
    workspace: Workspace = Depends(get_workspace)
):
    """List quotes, optionally filtered by status"""
    if quote_status is not None:
        return workspace.quotes.get_quotes_by_status(quote_status)
    return workspace.quotes.all()


@router.post("/", response_model=Quote, status_code=status.HTTP_201_CREATED)
async def create_quote(quote: QuoteCreate, workspace: Workspace = Depends(get_workspace)):
    """Create a quote, optionally with an initial set of products"""
    created = workspace.quotes.create_quote(
        quote.project_name,
        quote.client_name,
        quote.currency,
        delivery_date=quote.delivery_date,
        payment_terms=quote.payment_terms,
    )
    if not quote.products:
        return created

    context = workspace.cost_context()
    result = created
    for product in quote.products:
        line = quote_product_from_product(product, quote.currency, context, workspace.clock)
        result = workspace.quotes.add_product_to_quote(line, created.id)
    return result


@router.get("/{quote_id}", response_model=Quote)
async def get_quote(quote_id: str, workspace: Workspace = Depends(get_workspace)):
    return _get_quote(workspace, quote_id)


@router.delete("/{quote_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quote(quote_id: str, workspace: Workspace = Depends(get_workspace)):
    if not workspace.quotes.delete_quote(quote_id):
        raise QuoteNotFoundError(quote_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{quote_id}/products", response_model=Quote)
async def add_product(quote_id: str, product: Product, workspace: Workspace = Depends(get_workspace)):
    quote = _get_quote(workspace, quote_id)
    line = quote_product_from_product(product, quote.currency, workspace.cost_context(), workspace.clock)
    return workspace.quotes.add_product_to_quote(line, quote_id)


@router.delete("/{quote_id}/products/{product_id}", response_model=Quote)
async def remove_product(quote_id: str, product_id: str, workspace: Workspace = Depends(get_workspace)):
    _get_quote(workspace, quote_id)
    return _found(workspace.quotes.remove_product_from_quote(product_id, quote_id), quote_id)


@router.patch("/{quote_id}/status", response_model=Quote)
async def update_status(quote_id: str, update: QuoteStatusUpdate, workspace: Workspace = Depends(get_workspace)):
    """Move a quote to any status; ``completed`` stamps ``finalized_at``"""
    return _found(workspace.quotes.update_quote_status(quote_id, update.status), quote_id)


@router.put("/{quote_id}/discount", response_model=Quote)
async def update_discount(
    quote_id: str,
    discount: Optional[DiscountInfo] = None,
    workspace: Workspace = Depends(get_workspace)
):
    """Set the quote discount; an empty body clears it"""
    return _found(workspace.quotes.update_quote_discount(quote_id, discount), quote_id)


@router.put("/{quote_id}/shipping", response_model=Quote)
async def update_shipping(
    quote_id: str,
    shipping: Optional[ShippingInfo] = None,
    workspace: Workspace = Depends(get_workspace)
):
    """Set the quote shipping; an empty body clears it"""
    return _found(workspace.quotes.update_quote_shipping(quote_id, shipping), quote_id)


@router.get("/{quote_id}/totals", response_model=QuoteTotals)
async def get_totals(quote_id: str, workspace: Workspace = Depends(get_workspace)):
    quote = _get_quote(workspace, quote_id)
    return compute_quote_totals(quote.products, quote.discount, quote.shipping)


@router.get("/{quote_id}/finalize", response_model=FinalizedQuoteView)
async def get_finalized_view(
    quote_id: str,
    customer_type: CustomerType = CustomerType.PRIVATE,
    workspace: Workspace = Depends(get_workspace)
):
    """Customer-facing view of the quote with VAT split per customer type"""
    return build_finalized_view(_get_quote(workspace, quote_id), customer_type)


@router.get("/{quote_id}/export.xlsx")
async def export_quote(quote_id: str, workspace: Workspace = Depends(get_workspace)):
    """Download the quote as an Excel workbook"""
    quote = _get_quote(workspace, quote_id)
    content = workspace.excel_exporter().export(quote)
    logger.info(f"Exported quote {quote.quote_number} ({len(content)} bytes)")
    return StreamingResponse(
        BytesIO(content),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition": f"attachment; filename=quote_{quote.quote_number}.xlsx"
        }
    )
