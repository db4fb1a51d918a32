"""
API v1 Router
"""
from fastapi import APIRouter
from materials_engine.api.v1.endpoints import (
    work_orders,
    matching,
)

router = APIRouter()

# Work order material requirements, reservations and consumption
router.include_router(work_orders.router)

# Three-way matching
router.include_router(matching.router)
