"""
Work Order Material Status

Read model of what a work order has reserved and used. Recomputed from the
reservation and consumption records on every call.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from materials_engine.core.status_config import ACTIVE_RESERVATION_STATUSES
from materials_engine.exceptions import NotFoundError
from materials_engine.models.reservation import MaterialConsumption, MaterialReservation
from materials_engine.models.work_order import WorkOrder
from materials_engine.services.availability import to_decimal


@dataclass
class WorkOrderMaterialStatus:
    work_order_id: int
    work_order_code: str
    total_reserved: Decimal
    total_consumed: Decimal
    remaining_reserved: Decimal
    total_released: Decimal
    active_reserved: Decimal
    reservation_count: int
    consumption_count: int
    reservations: List[MaterialReservation] = field(default_factory=list)
    consumptions: List[MaterialConsumption] = field(default_factory=list)


class WorkOrderMaterialStatusService:

    def __init__(self, db: Session):
        self.db = db

    def status(self, work_order_id: int) -> WorkOrderMaterialStatus:
        """
        total_reserved is the lifetime sum of reserved quantities and
        remaining_reserved = total_reserved - total_consumed, so released
        quantities still count in remaining_reserved; active_reserved is the
        claim that actually holds stock right now.
        """
        work_order = self.db.get(WorkOrder, work_order_id)
        if not work_order:
            raise NotFoundError("WorkOrder", work_order_id)

        reservations = (
            self.db.query(MaterialReservation)
            .filter(MaterialReservation.work_order_id == work_order_id)
            .order_by(MaterialReservation.reserved_at, MaterialReservation.id)
            .all()
        )
        consumptions = (
            self.db.query(MaterialConsumption)
            .filter(MaterialConsumption.work_order_id == work_order_id)
            .order_by(MaterialConsumption.consumed_at, MaterialConsumption.id)
            .all()
        )

        total_reserved = sum((to_decimal(r.quantity) for r in reservations), Decimal("0"))
        total_released = sum((to_decimal(r.released_quantity) for r in reservations), Decimal("0"))
        active_reserved = sum(
            (r.remaining_quantity for r in reservations if r.status in ACTIVE_RESERVATION_STATUSES),
            Decimal("0"),
        )
        total_consumed = sum((to_decimal(c.quantity) for c in consumptions), Decimal("0"))

        return WorkOrderMaterialStatus(
            work_order_id=work_order.id,
            work_order_code=work_order.code,
            total_reserved=total_reserved,
            total_consumed=total_consumed,
            remaining_reserved=total_reserved - total_consumed,
            total_released=total_released,
            active_reserved=active_reserved,
            reservation_count=len(reservations),
            consumption_count=len(consumptions),
            reservations=reservations,
            consumptions=consumptions,
        )
