"""
Consumption Processor

Converts reserved material into used material: stock leaves the shelf,
the reservation shrinks, and a consumption record is appended. All writes
of one consume call commit together or not at all.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from materials_engine.core.settings import get_settings
from materials_engine.core.status_config import ReservationStatus, validate_reservation_transition
from materials_engine.exceptions import (
    InsufficientReservedQuantityError,
    NotFoundError,
    ReservationNotFoundError,
    ValidationError,
)
from materials_engine.logging_config import get_logger
from materials_engine.models.material import Material
from materials_engine.models.reservation import MaterialConsumption
from materials_engine.models.work_order import WorkOrder
from materials_engine.services import audit_service
from materials_engine.services.audit_service import AuditLogService
from materials_engine.services.availability import to_decimal
from materials_engine.services.inventory_service import InventoryLedger
from materials_engine.services.locking import lock_material_rows, transactional
from materials_engine.services.reservation_service import ReservationManager, validate_quantity

logger = get_logger(__name__)


@dataclass
class ConsumptionLine:
    material_id: int
    quantity: Decimal


class ConsumptionProcessor:
    """Consumes reserved materials for work orders."""

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditLogService(db)
        self.ledger = InventoryLedger(db)
        self.reservations = ReservationManager(db)

    def consume(
        self,
        work_order_id: int,
        lines: List[ConsumptionLine],
        created_by: Optional[str] = None,
    ) -> List[MaterialConsumption]:
        """
        Consume materials against a work order's active reservations.

        When a work order holds several active reservations for a material
        the oldest is drawn down first.

        Raises:
            ValidationError: empty request or non-positive quantity
            NotFoundError: work order does not exist
            ReservationNotFoundError: no active reservation for a material
            InsufficientReservedQuantityError: request exceeds what is still reserved
            InsufficientStockError: on-hand cannot cover the request
            LockTimeoutError: inventory rows stayed locked past LOCK_TIMEOUT_MS
        """
        if not lines:
            raise ValidationError("At least one material consumption is required", field="material_consumptions")

        actor = created_by or get_settings().DEFAULT_ACTOR
        parsed = [
            ConsumptionLine(material_id=line.material_id, quantity=validate_quantity(line.quantity))
            for line in lines
        ]

        consumptions: List[MaterialConsumption] = []
        with transactional(self.db):
            lock_material_rows(self.db, {line.material_id for line in parsed})

            work_order = self.db.get(WorkOrder, work_order_id)
            if not work_order:
                raise NotFoundError("WorkOrder", work_order_id)

            for line in parsed:
                consumptions.extend(self._consume_line(work_order_id, line, actor))

        logger.info(
            "Materials consumed",
            extra={
                "work_order_id": work_order_id,
                "consumption_count": len(consumptions),
                "actor": actor,
            },
        )
        return consumptions

    def _consume_line(self, work_order_id: int, line: ConsumptionLine, actor: str) -> List[MaterialConsumption]:
        material = self.db.get(Material, line.material_id)
        active = self.reservations.active_reservations(work_order_id, line.material_id)
        if not active:
            raise ReservationNotFoundError(work_order_id, line.material_id, material_code=material.code)

        reserved = sum((r.remaining_quantity for r in active), Decimal("0"))
        if line.quantity > reserved:
            logger.warning(
                "Consumption rejected: exceeds reserved quantity",
                extra={
                    "work_order_id": work_order_id,
                    "material_id": line.material_id,
                    "requested": line.quantity,
                    "reserved": reserved,
                },
            )
            raise InsufficientReservedQuantityError(
                work_order_id=work_order_id,
                material_id=line.material_id,
                material_code=material.code,
                requested=line.quantity,
                reserved=reserved,
            )

        issue = self.ledger.issue(
            line.material_id,
            line.quantity,
            work_order_id=work_order_id,
            created_by=actor,
        )

        consumed_at = datetime.utcnow()
        records = []
        left = line.quantity
        for reservation in active:
            if left <= 0:
                break
            take = min(reservation.remaining_quantity, left)
            left -= take

            reservation.consumed_quantity = to_decimal(reservation.consumed_quantity) + take
            if reservation.remaining_quantity == 0:
                new_status = ReservationStatus.CONSUMED.value
            else:
                new_status = ReservationStatus.PARTIALLY_CONSUMED.value
            validate_reservation_transition(reservation.status, new_status)
            reservation.status = new_status

            record = MaterialConsumption(
                work_order_id=work_order_id,
                material_id=line.material_id,
                reservation_id=reservation.id,
                quantity=take,
                consumed_at=consumed_at,
                created_by=actor,
            )
            self.db.add(record)
            records.append(record)

        self.ledger.change_allocated(line.material_id, -line.quantity)
        self.db.flush()

        self.audit.record(
            actor=actor,
            action=audit_service.MATERIAL_CONSUMED,
            entity_type="material",
            entity_id=line.material_id,
            old_value={"quantity": issue.on_hand_before},
            new_value={"quantity": issue.on_hand_after, "work_order_id": work_order_id},
            reference_id=f"WO-{work_order_id}",
            additional_data={
                "consumed_quantity": line.quantity,
                "consumption_ids": [r.id for r in records],
                "reservation_ids": [r.reservation_id for r in records],
            },
        )
        return records
