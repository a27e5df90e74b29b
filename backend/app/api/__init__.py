from fastapi import APIRouter
from app.api import messages, reconcile, stats

api_router = APIRouter()
api_router.include_router(reconcile.router, prefix="/reconcile", tags=["reconcile"])
api_router.include_router(stats.router, prefix="/stats", tags=["stats"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
