"""
Reservation Manager

Claims stock for work orders so two orders cannot promise the same units.

State machine (see core/status_config.py):
    RESERVED -> PARTIALLY_CONSUMED -> CONSUMED
    RESERVED -> CONSUMED
    RESERVED | PARTIALLY_CONSUMED -> RELEASED

A reserve request is all-or-nothing: availability for every material is
re-read under the inventory row locks and any shortfall aborts the batch.
"""
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from materials_engine.core.settings import get_settings
from materials_engine.core.status_config import (
    ACTIVE_RESERVATION_STATUSES,
    ReservationPriority,
    ReservationStatus,
    validate_reservation_transition,
)
from materials_engine.exceptions import InsufficientStockError, NotFoundError, ValidationError
from materials_engine.logging_config import get_logger
from materials_engine.models.material import Material
from materials_engine.models.reservation import MaterialReservation
from materials_engine.models.work_order import WorkOrder
from materials_engine.services import audit_service
from materials_engine.services.audit_service import AuditLogService
from materials_engine.services.availability import (
    QUANTITY_PLACES,
    AvailabilityCalculator,
    fits_quantity_scale,
    to_decimal,
)
from materials_engine.services.inventory_service import InventoryLedger
from materials_engine.services.locking import lock_material_rows, transactional

logger = get_logger(__name__)


@dataclass
class ReservationLine:
    material_id: int
    quantity: Decimal
    priority: str = ReservationPriority.NORMAL.value


def validate_quantity(quantity, field_name: str = "quantity") -> Decimal:
    """Parse a request quantity: a finite number greater than zero at the stored scale."""
    try:
        qty = to_decimal(quantity)
    except ArithmeticError:
        raise ValidationError(f"{field_name} must be a number", field=field_name, value=quantity)
    if not qty.is_finite() or qty <= 0:
        raise ValidationError(f"{field_name} must be greater than zero", field=field_name, value=quantity)
    if not fits_quantity_scale(qty):
        raise ValidationError(
            f"{field_name} allows at most {QUANTITY_PLACES} decimal places",
            field=field_name,
            value=quantity,
        )
    return qty


class ReservationManager:
    """Creates and releases material reservations."""

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditLogService(db)
        self.availability = AvailabilityCalculator(db)
        self.ledger = InventoryLedger(db)

    def active_reservations(
        self,
        work_order_id: int,
        material_id: Optional[int] = None,
    ) -> List[MaterialReservation]:
        """Active reservations of a work order, oldest first."""
        query = self.db.query(MaterialReservation).filter(
            MaterialReservation.work_order_id == work_order_id,
            MaterialReservation.status.in_(ACTIVE_RESERVATION_STATUSES),
        )
        if material_id is not None:
            query = query.filter(MaterialReservation.material_id == material_id)
        return (
            query.order_by(MaterialReservation.reserved_at, MaterialReservation.id)
            .populate_existing()
            .all()
        )

    def reserve(
        self,
        work_order_id: int,
        lines: List[ReservationLine],
        created_by: Optional[str] = None,
    ) -> List[MaterialReservation]:
        """
        Reserve materials for a work order.

        Lines for the same material are summed for the availability check
        but each line becomes its own reservation.

        Raises:
            ValidationError: empty request, non-positive quantity, unknown priority
            NotFoundError: work order or material does not exist
            InsufficientStockError: any material's net availability is short
            LockTimeoutError: inventory rows stayed locked past LOCK_TIMEOUT_MS
        """
        if not lines:
            raise ValidationError("At least one material reservation is required", field="material_reservations")

        actor = created_by or get_settings().DEFAULT_ACTOR
        parsed: List[ReservationLine] = []
        for line in lines:
            qty = validate_quantity(line.quantity)
            priority = (line.priority or ReservationPriority.NORMAL.value).upper()
            if priority not in [p.value for p in ReservationPriority]:
                raise ValidationError(
                    f"Invalid priority '{line.priority}'",
                    field="priority",
                    value=line.priority,
                    details={"allowed": [p.value for p in ReservationPriority]},
                )
            parsed.append(ReservationLine(material_id=line.material_id, quantity=qty, priority=priority))

        demand: "OrderedDict[int, Decimal]" = OrderedDict()
        for line in parsed:
            demand[line.material_id] = demand.get(line.material_id, Decimal("0")) + line.quantity

        with transactional(self.db):
            lock_material_rows(self.db, demand.keys())

            work_order = self.db.get(WorkOrder, work_order_id)
            if not work_order:
                raise NotFoundError("WorkOrder", work_order_id)

            for material_id in sorted(demand):
                requested = demand[material_id]
                available = self.availability.net_available(material_id)
                if requested > available:
                    material = self.db.get(Material, material_id)
                    logger.warning(
                        "Reservation rejected: insufficient stock",
                        extra={
                            "work_order_id": work_order_id,
                            "material_id": material_id,
                            "requested": requested,
                            "available": available,
                        },
                    )
                    raise InsufficientStockError(
                        material_id=material_id,
                        material_code=material.code,
                        requested=requested,
                        available=available,
                    )

            reservations = []
            for line in parsed:
                reservation = MaterialReservation(
                    work_order_id=work_order_id,
                    material_id=line.material_id,
                    quantity=line.quantity,
                    consumed_quantity=0,
                    released_quantity=0,
                    status=ReservationStatus.RESERVED.value,
                    priority=line.priority,
                    created_by=actor,
                    reserved_at=datetime.utcnow(),
                )
                self.db.add(reservation)
                reservations.append(reservation)
            self.db.flush()

            for reservation in reservations:
                self.ledger.change_allocated(reservation.material_id, to_decimal(reservation.quantity))
                self.audit.record(
                    actor=actor,
                    action=audit_service.MATERIAL_RESERVED,
                    entity_type="material",
                    entity_id=reservation.material_id,
                    old_value={"reserved_quantity": 0},
                    new_value={
                        "reserved_quantity": reservation.quantity,
                        "work_order_id": work_order_id,
                    },
                    reference_id=f"WO-{work_order_id}",
                    additional_data={
                        "reservation_id": reservation.id,
                        "priority": reservation.priority,
                    },
                )

        logger.info(
            "Materials reserved",
            extra={
                "work_order_id": work_order_id,
                "reservation_count": len(reservations),
                "actor": actor,
            },
        )
        return reservations

    def release(
        self,
        work_order_id: int,
        released_by: Optional[str] = None,
    ) -> List[MaterialReservation]:
        """
        Release every active reservation of a work order.

        The unconsumed remainder goes back to net availability; consumed
        quantities are untouched. Releasing a work order with nothing active
        (or one that does not exist) returns an empty list.
        """
        actor = released_by or get_settings().DEFAULT_ACTOR

        material_ids = {r.material_id for r in self.active_reservations(work_order_id)}
        if not material_ids:
            return []

        with transactional(self.db):
            locked: Set[int] = set()
            # Re-read under lock until the materials of every active reservation are locked
            while not material_ids <= locked:
                locked |= material_ids
                lock_material_rows(self.db, locked)
                active = self.active_reservations(work_order_id)
                material_ids = {r.material_id for r in active}
            released_at = datetime.utcnow()
            for reservation in active:
                remaining = reservation.remaining_quantity
                validate_reservation_transition(reservation.status, ReservationStatus.RELEASED.value)
                old_status = reservation.status

                reservation.released_quantity = to_decimal(reservation.released_quantity) + remaining
                reservation.status = ReservationStatus.RELEASED.value
                reservation.released_at = released_at
                reservation.released_by = actor
                self.db.flush()

                self.ledger.change_allocated(reservation.material_id, -remaining)
                self.audit.record(
                    actor=actor,
                    action=audit_service.MATERIAL_RESERVATION_RELEASED,
                    entity_type="material",
                    entity_id=reservation.material_id,
                    old_value={"status": old_status, "remaining_quantity": remaining},
                    new_value={"status": reservation.status, "released_quantity": remaining},
                    reference_id=f"WO-{work_order_id}",
                    additional_data={"reservation_id": reservation.id},
                )

        logger.info(
            "Reservations released",
            extra={"work_order_id": work_order_id, "released_count": len(active), "actor": actor},
        )
        return active

