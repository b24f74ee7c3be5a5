from fastapi import APIRouter, Depends
from typing import List

from makercost.api.deps import get_workspace
from makercost.core.workspace import Workspace
from makercost.schemas.pricing import PricingBreakdown, WhatIfCell
from makercost.schemas.requests import CalculateRequest, WhatIfRequest
from makercost.services.pricing_engine import calculate_product_breakdown, what_if_matrix

router = APIRouter()


@router.post("/calculate", response_model=PricingBreakdown)
async def calculate(request: CalculateRequest, workspace: Workspace = Depends(get_workspace)):
    """Cost, revenue, VAT and profit breakdown for one product"""
    context = request.context or workspace.cost_context()
    return calculate_product_breakdown(request.product, context)


@router.post("/what-if", response_model=List[List[WhatIfCell]])
async def what_if(request: WhatIfRequest, workspace: Workspace = Depends(get_workspace)):
    """
    Profit grid over price and quantity changes.

    Rows follow ``quantity_changes``, columns follow ``price_changes``.
    """
    context = request.context or workspace.cost_context()
    return what_if_matrix(request.product, context, request.price_changes, request.quantity_changes)
