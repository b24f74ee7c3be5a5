from fastapi import APIRouter, Depends
from typing import Optional

from makercost.api.deps import get_workspace
from makercost.core.workspace import Workspace
from makercost.schemas.pricing import Currency, PricingBreakdown, PricingProject
from makercost.schemas.requests import AutosaveResponse, ProjectUpdate

router = APIRouter()


@router.get("/project", response_model=PricingProject)
async def get_project(workspace: Workspace = Depends(get_workspace)):
    """The project open in the calculator"""
    return workspace.project.get()


@router.put("/project", response_model=PricingProject)
async def update_project(update: ProjectUpdate, workspace: Workspace = Depends(get_workspace)):
    """Apply a partial update; autosave picks up the change"""
    updates = {key: getattr(update, key) for key in update.model_fields_set}
    return workspace.project.update(updates)


@router.post("/project/new", response_model=PricingProject)
async def new_project(currency: Optional[Currency] = None, workspace: Workspace = Depends(get_workspace)):
    return workspace.project.new_project(currency)


@router.get("/project/breakdown", response_model=PricingBreakdown)
async def get_project_breakdown(workspace: Workspace = Depends(get_workspace)):
    return workspace.project.calculate(workspace.cost_context())


@router.post("/autosave/save-now", response_model=AutosaveResponse)
async def save_now(workspace: Workspace = Depends(get_workspace)):
    """Save the project into its draft quote without waiting for the interval"""
    quote = await workspace.autosave.save_now()
    return AutosaveResponse(saved=quote is not None, quote=quote)
