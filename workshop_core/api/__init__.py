"""API routes for Workshop Core."""

from fastapi import APIRouter

from .appointments import router as appointments_router
from .work_orders import router as work_orders_router

# Main API router
api_router = APIRouter()

api_router.include_router(appointments_router)
api_router.include_router(work_orders_router)

__all__ = ["api_router"]
