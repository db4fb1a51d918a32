"""
Availability Calculator

net_available = on_hand - reserved, where reserved is recomputed from the
active reservations every call. The allocated_quantity counter on the
inventory rows is a maintained copy of the same figure; verify_counter and
reconcile_counter compare and repair it.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from materials_engine.core.settings import get_settings
from materials_engine.core.status_config import ACTIVE_RESERVATION_STATUSES
from materials_engine.exceptions import CounterMismatchError
from materials_engine.logging_config import get_logger
from materials_engine.models.inventory import Inventory
from materials_engine.models.reservation import MaterialReservation
from materials_engine.services import audit_service
from materials_engine.services.audit_service import AuditLogService
from materials_engine.services.locking import (
    get_or_create_default_location,
    lock_material_rows,
    transactional,
)

logger = get_logger(__name__)


def to_decimal(value: Any) -> Decimal:
    """Coerce a DB or request quantity to Decimal (None -> 0)."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# Scale of every quantity column (Numeric(18, 4))
QUANTITY_PLACES = 4


def fits_quantity_scale(value: Decimal) -> bool:
    """True when value is finite and stored exactly at QUANTITY_PLACES decimal places."""
    return value.is_finite() and value.normalize().as_tuple().exponent >= -QUANTITY_PLACES


@dataclass
class AvailabilitySnapshot:
    material_id: int
    on_hand: Decimal
    reserved: Decimal
    allocated_counter: Decimal
    net_available: Decimal


class AvailabilityCalculator:
    """Read-side stock figures for a material, summed over all locations."""

    def __init__(self, db: Session):
        self.db = db

    def on_hand(self, material_id: int) -> Decimal:
        total = self.db.query(
            func.coalesce(func.sum(Inventory.on_hand_quantity), 0)
        ).filter(Inventory.material_id == material_id).scalar()
        return to_decimal(total)

    def reserved(self, material_id: int) -> Decimal:
        """Remaining quantity of RESERVED and PARTIALLY_CONSUMED reservations."""
        remaining = (
            MaterialReservation.quantity
            - MaterialReservation.consumed_quantity
            - MaterialReservation.released_quantity
        )
        total = self.db.query(func.coalesce(func.sum(remaining), 0)).filter(
            MaterialReservation.material_id == material_id,
            MaterialReservation.status.in_(ACTIVE_RESERVATION_STATUSES),
        ).scalar()
        return to_decimal(total)

    def net_available(self, material_id: int) -> Decimal:
        return self.on_hand(material_id) - self.reserved(material_id)

    def allocated_counter(self, material_id: int) -> Decimal:
        total = self.db.query(
            func.coalesce(func.sum(Inventory.allocated_quantity), 0)
        ).filter(Inventory.material_id == material_id).scalar()
        return to_decimal(total)

    def snapshot(self, material_id: int) -> AvailabilitySnapshot:
        on_hand = self.on_hand(material_id)
        reserved = self.reserved(material_id)
        return AvailabilitySnapshot(
            material_id=material_id,
            on_hand=on_hand,
            reserved=reserved,
            allocated_counter=self.allocated_counter(material_id),
            net_available=on_hand - reserved,
        )

    def verify_counter(self, material_id: int) -> Decimal:
        """
        Check the maintained allocated counter against a reservation scan.

        Returns the agreed figure; raises CounterMismatchError otherwise.
        """
        counter = self.allocated_counter(material_id)
        scanned = self.reserved(material_id)
        if counter != scanned:
            logger.error(
                "Allocated counter disagrees with reservations",
                extra={"material_id": material_id, "counter": counter, "scanned": scanned},
            )
            raise CounterMismatchError(material_id, counter=counter, scanned=scanned)
        return scanned

    def reconcile_counter(self, material_id: int, actor: Optional[str] = None) -> AvailabilitySnapshot:
        """Rewrite the allocated counter from the reservation scan (under lock)."""
        actor = actor or get_settings().DEFAULT_ACTOR
        with transactional(self.db):
            rows = lock_material_rows(self.db, [material_id])[material_id]
            default_location_id = get_or_create_default_location(self.db).id
            old_counter = sum((to_decimal(r.allocated_quantity) for r in rows), Decimal("0"))
            scanned = self.reserved(material_id)
            for row in rows:
                row.allocated_quantity = scanned if row.location_id == default_location_id else 0
            self.db.flush()

            if old_counter != scanned:
                AuditLogService(self.db).record(
                    actor=actor,
                    action=audit_service.ALLOCATION_COUNTER_RECONCILED,
                    entity_type="inventory",
                    entity_id=material_id,
                    old_value={"allocated_quantity": old_counter},
                    new_value={"allocated_quantity": scanned},
                )
                logger.warning(
                    "Allocated counter reconciled",
                    extra={"material_id": material_id, "old_counter": old_counter, "scanned": scanned},
                )

        return self.snapshot(material_id)
