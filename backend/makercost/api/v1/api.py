from fastapi import APIRouter
from makercost.api.v1.endpoints import pricing, quotes, sync, projects, catalog

api_router = APIRouter()
api_router.include_router(pricing.router, prefix="/pricing", tags=["pricing"])
api_router.include_router(quotes.router, prefix="/quotes", tags=["quotes"])
api_router.include_router(sync.router, tags=["sync"])
api_router.include_router(projects.router, tags=["project", "autosave"])
api_router.include_router(catalog.router)
