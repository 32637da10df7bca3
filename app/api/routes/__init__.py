from fastapi import APIRouter

from app.api.routes import drafts, health, timelines

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(timelines.router, prefix="/timelines", tags=["timelines"])
api_router.include_router(drafts.router, prefix="/drafts", tags=["drafts"])
