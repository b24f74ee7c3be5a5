from fastapi import APIRouter, Body, Depends, Query, Response, status
from typing import Any, Dict, List, Optional
import logging

from makercost.api.deps import get_workspace
from makercost.core.exceptions import NotFoundError
from makercost.core.workspace import Workspace
from makercost.schemas.catalog import DashboardMachine, ShopData, UserMaterial
from makercost.schemas.pricing import MaterialCategory
from makercost.schemas.requests import (
    MaterialUsageCreate,
    ShopOverheadResponse,
    SubscriptionResponse,
    TierUpdate,
)
from makercost.utils.units import UnitSystem, get_grouped_units

logger = logging.getLogger(__name__)

router = APIRouter()


def _found(item, entity: str, item_id: str):
    if item is None:
        raise NotFoundError(entity, item_id)
    return item


# ============= MATERIALS =============

@router.get("/materials", response_model=List[UserMaterial], tags=["materials"])
async def list_materials(
    q: Optional[str] = None,
    category: Optional[str] = None,
    material_type: Optional[MaterialCategory] = None,
    low_stock: bool = False,
    workspace: Workspace = Depends(get_workspace)
):
    """List the material library; filters combine"""
    store = workspace.materials
    materials = store.search(q) if q else store.all()
    if category is not None:
        materials = [m for m in materials if m.category == category]
    if material_type is not None:
        materials = [m for m in materials if m.material_type == material_type]
    if low_stock:
        low_ids = {m.id for m in store.low_stock()}
        materials = [m for m in materials if m.id in low_ids]
    return materials


@router.get("/materials/units", tags=["materials"])
async def list_units(system: UnitSystem = "metric") -> Dict[str, List[Dict[str, str]]]:
    """Units offered for materials, grouped by category"""
    return get_grouped_units(system)


@router.get("/materials/{material_id}", response_model=UserMaterial, tags=["materials"])
async def get_material(material_id: str, workspace: Workspace = Depends(get_workspace)):
    return _found(workspace.materials.get_by_id(material_id), "Material", material_id)


@router.post("/materials", response_model=UserMaterial, status_code=status.HTTP_201_CREATED, tags=["materials"])
async def create_material(data: Dict[str, Any] = Body(...), workspace: Workspace = Depends(get_workspace)):
    material = workspace.materials.add_material(data)
    logger.info(f"Material {material.id} added")
    return material


@router.patch("/materials/{material_id}", response_model=UserMaterial, tags=["materials"])
async def update_material(
    material_id: str,
    updates: Dict[str, Any] = Body(...),
    workspace: Workspace = Depends(get_workspace)
):
    return _found(workspace.materials.update_material(material_id, updates), "Material", material_id)


@router.delete("/materials/{material_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["materials"])
async def delete_material(material_id: str, workspace: Workspace = Depends(get_workspace)):
    if not workspace.materials.remove_material(material_id):
        raise NotFoundError("Material", material_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/materials/{material_id}/usage", response_model=UserMaterial, tags=["materials"])
async def record_material_usage(
    material_id: str,
    usage: MaterialUsageCreate,
    workspace: Workspace = Depends(get_workspace)
):
    """Deduct stock used by a project"""
    updated = workspace.materials.record_usage(
        material_id, usage.project_id, usage.project_name, usage.quantity_used
    )
    return _found(updated, "Material", material_id)


# ============= MACHINES =============

@router.get("/machines", response_model=List[DashboardMachine], tags=["machines"])
async def list_machines(workspace: Workspace = Depends(get_workspace)):
    return workspace.machines.all()


@router.post("/machines", response_model=DashboardMachine, status_code=status.HTTP_201_CREATED, tags=["machines"])
async def create_machine(data: Dict[str, Any] = Body(...), workspace: Workspace = Depends(get_workspace)):
    return workspace.machines.add_machine(data)


@router.patch("/machines/{machine_id}", response_model=DashboardMachine, tags=["machines"])
async def update_machine(
    machine_id: str,
    updates: Dict[str, Any] = Body(...),
    workspace: Workspace = Depends(get_workspace)
):
    return _found(workspace.machines.update_machine(machine_id, updates), "Machine", machine_id)


@router.delete("/machines/{machine_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["machines"])
async def delete_machine(machine_id: str, workspace: Workspace = Depends(get_workspace)):
    if not workspace.machines.remove_machine(machine_id):
        raise NotFoundError("Machine", machine_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============= SHOP =============

@router.get("/shop", response_model=ShopData, tags=["shop"])
async def get_shop(workspace: Workspace = Depends(get_workspace)):
    return workspace.shop.get()


@router.patch("/shop", response_model=ShopData, tags=["shop"])
async def update_shop(updates: Dict[str, Any] = Body(...), workspace: Workspace = Depends(get_workspace)):
    """Partial update; monthly hours follow operating hours and days"""
    return workspace.shop.update_shop_data(updates)


@router.post("/shop/reset", response_model=ShopData, tags=["shop"])
async def reset_shop(workspace: Workspace = Depends(get_workspace)):
    return workspace.shop.reset_shop_data()


@router.get("/shop/overhead", response_model=ShopOverheadResponse, tags=["shop"])
async def get_shop_overhead(workspace: Workspace = Depends(get_workspace)):
    shop = workspace.shop
    return ShopOverheadResponse(
        monthly_overhead=shop.monthly_overhead(),
        hourly_overhead=shop.hourly_overhead(),
        total_monthly_hours=shop.get().total_monthly_hours,
    )


# ============= SUBSCRIPTION =============

def _subscription_response(workspace: Workspace) -> SubscriptionResponse:
    store = workspace.subscription
    return SubscriptionResponse(
        subscription=store.get(),
        limits=store.tier_limits,
        remaining_projects=store.get_remaining_usage("projects"),
        remaining_materials=store.get_remaining_usage("materials"),
    )


@router.get("/subscription", response_model=SubscriptionResponse, tags=["subscription"])
async def get_subscription(workspace: Workspace = Depends(get_workspace)):
    return _subscription_response(workspace)


@router.put("/subscription/tier", response_model=SubscriptionResponse, tags=["subscription"])
async def update_tier(update: TierUpdate, workspace: Workspace = Depends(get_workspace)):
    workspace.subscription.update_tier(update.tier)
    logger.info(f"Subscription tier set to {update.tier.value}")
    return _subscription_response(workspace)
