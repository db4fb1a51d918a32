"""
Material Requirements Pydantic Schemas

Schemas for:
- BOM explosion results
- Reservation and consumption requests
- Work order material status
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from materials_engine.core.status_config import ReservationPriority


# ============================================================================
# BOM Explosion
# ============================================================================

class MaterialRequirementResponse(BaseModel):
    """Demand and availability for one material"""
    material_id: int
    material_code: str
    material_name: str
    unit: str
    required_quantity: Decimal
    bom_level: int
    on_hand: Decimal
    reserved: Decimal
    net_available: Decimal
    shortage: Decimal
    can_fulfill: bool
    fulfillment_percentage: Decimal

    class Config:
        from_attributes = True


class ExplosionSummaryResponse(BaseModel):
    total_materials: int
    total_required_quantity: Decimal
    total_shortage: Decimal
    can_start_production: bool
    fulfillment_percentage: Decimal = Field(..., description="Unweighted mean over materials")
    weighted_fulfillment_percentage: Decimal = Field(..., description="Weighted by required quantity")

    class Config:
        from_attributes = True


class BOMExplosionResponse(BaseModel):
    work_order_id: int
    work_order_code: str
    requirements: List[MaterialRequirementResponse]
    summary: ExplosionSummaryResponse

    class Config:
        from_attributes = True


# ============================================================================
# Reservations
# ============================================================================

class MaterialReservationItem(BaseModel):
    """One material to reserve"""
    material_id: int = Field(..., gt=0)
    quantity: Decimal = Field(..., gt=0, max_digits=18, decimal_places=4, description="Quantity to reserve")
    priority: ReservationPriority = ReservationPriority.NORMAL


class ReserveMaterialsRequest(BaseModel):
    material_reservations: List[MaterialReservationItem] = Field(..., min_length=1)
    created_by: Optional[str] = Field(None, max_length=100)


class ReleaseReservationsRequest(BaseModel):
    created_by: Optional[str] = Field(None, max_length=100)


class MaterialReservationResponse(BaseModel):
    id: int
    work_order_id: int
    material_id: int
    quantity: Decimal
    consumed_quantity: Decimal
    released_quantity: Decimal
    remaining_quantity: Decimal
    status: str
    priority: str
    created_by: str
    reserved_at: datetime
    released_at: Optional[datetime] = None
    released_by: Optional[str] = None

    class Config:
        from_attributes = True


class ReservationListResponse(BaseModel):
    work_order_id: int
    count: int
    reservations: List[MaterialReservationResponse]


# ============================================================================
# Consumption
# ============================================================================

class MaterialConsumptionItem(BaseModel):
    """One material to consume"""
    material_id: int = Field(..., gt=0)
    quantity: Decimal = Field(..., gt=0, max_digits=18, decimal_places=4, description="Quantity consumed")


class ConsumeMaterialsRequest(BaseModel):
    material_consumptions: List[MaterialConsumptionItem] = Field(..., min_length=1)
    created_by: Optional[str] = Field(None, max_length=100)


class MaterialConsumptionResponse(BaseModel):
    id: int
    work_order_id: int
    material_id: int
    reservation_id: int
    quantity: Decimal
    consumed_at: datetime
    created_by: str

    class Config:
        from_attributes = True


class ConsumptionListResponse(BaseModel):
    work_order_id: int
    count: int
    consumptions: List[MaterialConsumptionResponse]


# ============================================================================
# Status
# ============================================================================

class MaterialStatusSummary(BaseModel):
    total_reserved: Decimal
    total_consumed: Decimal
    remaining_reserved: Decimal
    total_released: Decimal
    active_reserved: Decimal
    reservation_count: int
    consumption_count: int


class WorkOrderMaterialStatusResponse(BaseModel):
    work_order_id: int
    work_order_code: str
    summary: MaterialStatusSummary
    reservations: List[MaterialReservationResponse]
    consumptions: List[MaterialConsumptionResponse]
