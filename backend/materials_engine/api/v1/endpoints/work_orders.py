"""
Work Order Material Endpoints

- Explode a work order's BOM against current availability
- Reserve, release and consume materials
- Material status of a work order

Failures come back from the engine as typed errors and are re-raised for
the application exception handlers to render.
"""
from fastapi import APIRouter, Depends, status

from materials_engine.api.v1.deps import get_actor, get_engine
from materials_engine.schemas.common import ErrorResponse
from materials_engine.schemas.material_requirements import (
    BOMExplosionResponse,
    ConsumeMaterialsRequest,
    ConsumptionListResponse,
    MaterialConsumptionResponse,
    MaterialReservationResponse,
    MaterialStatusSummary,
    ReleaseReservationsRequest,
    ReservationListResponse,
    ReserveMaterialsRequest,
    WorkOrderMaterialStatusResponse,
)
from materials_engine.services.consumption_service import ConsumptionLine
from materials_engine.services.engine import MaterialRequirementsEngine
from materials_engine.services.reservation_service import ReservationLine

router = APIRouter(
    prefix="/work-orders",
    tags=["Work Order Materials"],
    responses={
        404: {"model": ErrorResponse, "description": "Work order, material or reservation not found"},
        422: {"model": ErrorResponse, "description": "Invalid request or insufficient stock"},
        503: {"model": ErrorResponse, "description": "Inventory busy; retry after Retry-After seconds"},
    },
)


@router.post("/{work_order_id}/explode-bom", response_model=BOMExplosionResponse)
def explode_bom(
    work_order_id: int,
    engine: MaterialRequirementsEngine = Depends(get_engine),
):
    """
    Explode the work order's BOM into material requirements.

    Each requirement carries on-hand, reserved, net-available, shortage and
    fulfillment percentage. Nothing is written.
    """
    result = engine.explode_bom(work_order_id).unwrap()
    return BOMExplosionResponse.model_validate(result)


@router.post(
    "/{work_order_id}/reserve-materials",
    response_model=ReservationListResponse,
    status_code=status.HTTP_201_CREATED,
)
def reserve_materials(
    work_order_id: int,
    request: ReserveMaterialsRequest,
    engine: MaterialRequirementsEngine = Depends(get_engine),
    actor: str = Depends(get_actor),
):
    """
    Reserve materials for a work order.

    All lines succeed or none do. Returns 422 INSUFFICIENT_STOCK naming the
    first short material, 503 BUSY when inventory is locked by another request.
    """
    lines = [
        ReservationLine(
            material_id=item.material_id,
            quantity=item.quantity,
            priority=item.priority.value,
        )
        for item in request.material_reservations
    ]
    reservations = engine.reserve_materials(
        work_order_id, lines, created_by=request.created_by or actor
    ).unwrap()
    return ReservationListResponse(
        work_order_id=work_order_id,
        count=len(reservations),
        reservations=[MaterialReservationResponse.model_validate(r) for r in reservations],
    )


@router.post("/{work_order_id}/release-reservations", response_model=ReservationListResponse)
def release_reservations(
    work_order_id: int,
    request: ReleaseReservationsRequest = ReleaseReservationsRequest(),
    engine: MaterialRequirementsEngine = Depends(get_engine),
    actor: str = Depends(get_actor),
):
    """
    Release every active reservation of the work order.

    Idempotent: releasing again returns an empty list.
    """
    released = engine.release_reservations(
        work_order_id, released_by=request.created_by or actor
    ).unwrap()
    return ReservationListResponse(
        work_order_id=work_order_id,
        count=len(released),
        reservations=[MaterialReservationResponse.model_validate(r) for r in released],
    )


@router.post(
    "/{work_order_id}/consume-materials",
    response_model=ConsumptionListResponse,
    status_code=status.HTTP_201_CREATED,
)
def consume_materials(
    work_order_id: int,
    request: ConsumeMaterialsRequest,
    engine: MaterialRequirementsEngine = Depends(get_engine),
    actor: str = Depends(get_actor),
):
    """Consume reserved materials. All lines succeed or none do."""
    lines = [
        ConsumptionLine(material_id=item.material_id, quantity=item.quantity)
        for item in request.material_consumptions
    ]
    consumptions = engine.consume_materials(
        work_order_id, lines, created_by=request.created_by or actor
    ).unwrap()
    return ConsumptionListResponse(
        work_order_id=work_order_id,
        count=len(consumptions),
        consumptions=[MaterialConsumptionResponse.model_validate(c) for c in consumptions],
    )


@router.get("/{work_order_id}/material-status", response_model=WorkOrderMaterialStatusResponse)
def material_status(
    work_order_id: int,
    engine: MaterialRequirementsEngine = Depends(get_engine),
):
    """Reserved, consumed and remaining totals with the underlying records"""
    result = engine.material_status(work_order_id).unwrap()
    return WorkOrderMaterialStatusResponse(
        work_order_id=result.work_order_id,
        work_order_code=result.work_order_code,
        summary=MaterialStatusSummary(
            total_reserved=result.total_reserved,
            total_consumed=result.total_consumed,
            remaining_reserved=result.remaining_reserved,
            total_released=result.total_released,
            active_reserved=result.active_reserved,
            reservation_count=result.reservation_count,
            consumption_count=result.consumption_count,
        ),
        reservations=[MaterialReservationResponse.model_validate(r) for r in result.reservations],
        consumptions=[MaterialConsumptionResponse.model_validate(c) for c in result.consumptions],
    )
