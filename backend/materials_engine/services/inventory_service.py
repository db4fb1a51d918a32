"""
Inventory Ledger

The only code that changes on_hand_quantity. The allocated counter moves
here too, except when AvailabilityCalculator.reconcile_counter rebuilds it.

- receive / adjust: stand-alone stock flows, each its own transaction
- issue / change_allocated: primitives used by the reservation and
  consumption services inside their own transactions, on rows already
  locked with lock_material_rows
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from materials_engine.core.settings import get_settings
from materials_engine.exceptions import (
    BusinessRuleError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from materials_engine.logging_config import get_logger
from materials_engine.models.inventory import Inventory, InventoryLocation, InventoryTransaction
from materials_engine.models.material import Material
from materials_engine.services import audit_service
from materials_engine.services.audit_service import AuditLogService
from materials_engine.services.availability import (
    QUANTITY_PLACES,
    AvailabilityCalculator,
    fits_quantity_scale,
    to_decimal,
)
from materials_engine.services.locking import (
    get_or_create_default_location,
    lock_material_rows,
    transactional,
)

logger = get_logger(__name__)


@dataclass
class StockIssue:
    """Outcome of issuing one material to a work order"""
    material_id: int
    quantity: Decimal
    on_hand_before: Decimal
    on_hand_after: Decimal
    transactions: List[InventoryTransaction] = field(default_factory=list)


class InventoryLedger:
    """Stock movements for materials across inventory locations."""

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditLogService(db)
        self.availability = AvailabilityCalculator(db)

    def get_default_location(self) -> InventoryLocation:
        return get_or_create_default_location(self.db)

    def lock_material_rows(self, material_ids: Iterable[int]) -> Dict[int, List[Inventory]]:
        return lock_material_rows(self.db, material_ids)

    def _row_at(self, material_id: int, location_id: int) -> Inventory:
        row = self.db.query(Inventory).filter(
            Inventory.material_id == material_id,
            Inventory.location_id == location_id,
        ).first()
        if not row:
            row = Inventory(
                material_id=material_id,
                location_id=location_id,
                on_hand_quantity=0,
                allocated_quantity=0,
                lock_version=1,
            )
            self.db.add(row)
            self.db.flush()
        return row

    def _resolve_location(self, location_id: Optional[int]) -> InventoryLocation:
        if location_id is None:
            return self.get_default_location()
        location = self.db.get(InventoryLocation, location_id)
        if not location:
            raise NotFoundError("InventoryLocation", location_id)
        return location

    # =========================================================================
    # Stand-alone stock flows
    # =========================================================================

    def receive(
        self,
        material_id: int,
        quantity,
        location_id: Optional[int] = None,
        created_by: Optional[str] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Inventory:
        """
        Add stock of a material at a location (default location when omitted).

        Raises:
            ValidationError: quantity is not positive
            NotFoundError: material or location does not exist
        """
        qty = to_decimal(quantity)
        if qty <= 0:
            raise ValidationError("Receipt quantity must be greater than zero", field="quantity", value=quantity)
        if not fits_quantity_scale(qty):
            raise ValidationError(
                f"Receipt quantity allows at most {QUANTITY_PLACES} decimal places", field="quantity", value=quantity
            )
        actor = created_by or get_settings().DEFAULT_ACTOR

        with transactional(self.db):
            lock_material_rows(self.db, [material_id])
            location = self._resolve_location(location_id)
            row = self._row_at(material_id, location.id)

            old_on_hand = to_decimal(row.on_hand_quantity)
            row.on_hand_quantity = old_on_hand + qty

            self.db.add(InventoryTransaction(
                material_id=material_id,
                location_id=location.id,
                transaction_type="receipt",
                reference_type=reference_type,
                reference_id=reference_id,
                quantity=qty,
                notes=notes,
                created_by=actor,
            ))
            self.db.flush()

            self.audit.record(
                actor=actor,
                action=audit_service.STOCK_RECEIVED,
                entity_type="inventory",
                entity_id=material_id,
                old_value={"on_hand_quantity": old_on_hand},
                new_value={"on_hand_quantity": row.on_hand_quantity, "location_id": location.id},
                reference_id=f"{reference_type}-{reference_id}" if reference_type and reference_id else None,
            )

        logger.info(
            "Stock received",
            extra={"material_id": material_id, "location_id": location.id, "quantity": qty, "actor": actor},
        )
        return row

    def adjust(
        self,
        material_id: int,
        location_id: Optional[int],
        new_quantity,
        created_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Inventory:
        """
        Set the on-hand quantity of a material at one location (cycle count).

        Refuses to go below zero, or to leave total on-hand below what is
        actively reserved for the material.
        """
        target = to_decimal(new_quantity)
        if target < 0:
            raise ValidationError("On-hand quantity cannot be negative", field="new_quantity", value=new_quantity)
        if not fits_quantity_scale(target):
            raise ValidationError(
                f"On-hand quantity allows at most {QUANTITY_PLACES} decimal places",
                field="new_quantity",
                value=new_quantity,
            )
        actor = created_by or get_settings().DEFAULT_ACTOR

        with transactional(self.db):
            lock_material_rows(self.db, [material_id])
            location = self._resolve_location(location_id)
            row = self._row_at(material_id, location.id)

            old_on_hand = to_decimal(row.on_hand_quantity)
            delta = target - old_on_hand
            total_after = self.availability.on_hand(material_id) + delta
            reserved = self.availability.reserved(material_id)
            if total_after < reserved:
                raise BusinessRuleError(
                    f"Adjustment would leave {format(total_after.normalize(), 'f')} on hand "
                    f"for material {material_id}, below {format(reserved.normalize(), 'f')} reserved",
                    rule="on_hand_covers_reservations",
                    details={
                        "material_id": str(material_id),
                        "on_hand_after": format(total_after.normalize(), "f"),
                        "reserved": format(reserved.normalize(), "f"),
                    },
                )

            row.on_hand_quantity = target
            if delta != 0:
                self.db.add(InventoryTransaction(
                    material_id=material_id,
                    location_id=location.id,
                    transaction_type="adjustment",
                    reference_type="adjustment",
                    quantity=delta,
                    notes=reason,
                    created_by=actor,
                ))
            self.db.flush()

            self.audit.record(
                actor=actor,
                action=audit_service.STOCK_ADJUSTED,
                entity_type="inventory",
                entity_id=material_id,
                old_value={"on_hand_quantity": old_on_hand},
                new_value={"on_hand_quantity": target, "location_id": location.id},
                additional_data={"reason": reason} if reason else None,
            )

        logger.info(
            "Stock adjusted",
            extra={"material_id": material_id, "location_id": location.id, "delta": delta, "actor": actor},
        )
        return row

    # =========================================================================
    # Primitives (caller owns the transaction and has locked the rows)
    # =========================================================================

    def issue(
        self,
        material_id: int,
        quantity: Decimal,
        *,
        work_order_id: int,
        created_by: str,
    ) -> StockIssue:
        """
        Take stock out for a work order, default location first, then the
        other locations by id. Writes one consumption transaction per
        location touched.

        Raises:
            InsufficientStockError: total on-hand cannot cover the quantity
        """
        default_location = self.get_default_location()
        rows = (
            self.db.query(Inventory)
            .filter(Inventory.material_id == material_id)
            .order_by(Inventory.id)
            .all()
        )
        rows.sort(key=lambda r: (r.location_id != default_location.id, r.id))

        on_hand_before = sum((to_decimal(r.on_hand_quantity) for r in rows), Decimal("0"))
        if on_hand_before < quantity:
            material = self.db.get(Material, material_id)
            raise InsufficientStockError(
                material_id=material_id,
                material_code=material.code if material else None,
                requested=quantity,
                available=on_hand_before,
            )

        result = StockIssue(
            material_id=material_id,
            quantity=quantity,
            on_hand_before=on_hand_before,
            on_hand_after=on_hand_before - quantity,
        )
        left = quantity
        for row in rows:
            if left <= 0:
                break
            row_qty = to_decimal(row.on_hand_quantity)
            take = min(row_qty, left)
            if take <= 0:
                continue
            row.on_hand_quantity = row_qty - take
            left -= take
            txn = InventoryTransaction(
                material_id=material_id,
                location_id=row.location_id,
                transaction_type="consumption",
                reference_type="work_order",
                reference_id=work_order_id,
                quantity=-take,
                notes=f"Consumed for WO-{work_order_id}",
                created_by=created_by,
            )
            self.db.add(txn)
            result.transactions.append(txn)
        self.db.flush()
        return result

    def change_allocated(self, material_id: int, delta: Decimal) -> Inventory:
        """Move the allocated counter kept on the material's default-location row."""
        row = self._row_at(material_id, self.get_default_location().id)
        row.allocated_quantity = to_decimal(row.allocated_quantity) + delta
        self.db.flush()
        return row
