"""
Unit Tests for ConsumptionProcessor
"""
import pytest
from decimal import Decimal

from materials_engine.exceptions import (
    ErrorKind,
    InsufficientReservedQuantityError,
    InsufficientStockError,
    NotFoundError,
    ReservationNotFoundError,
    ValidationError,
)
from materials_engine.models import (
    AuditLog,
    Inventory,
    InventoryTransaction,
    MaterialConsumption,
    MaterialReservation,
)
from materials_engine.services.availability import AvailabilityCalculator
from materials_engine.services.consumption_service import ConsumptionLine, ConsumptionProcessor
from materials_engine.services.reservation_service import ReservationLine, ReservationManager

from tests.factories import (
    create_stocked_material,
    create_test_inventory,
    create_test_location,
    create_test_work_order,
)


class TestConsume:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.processor = ConsumptionProcessor(db_session)
        self.manager = ReservationManager(db_session)
        self.calc = AvailabilityCalculator(db_session)
        self.steel = create_stocked_material(db_session, code="STL-01", quantity=Decimal("100"))
        self.work_order = create_test_work_order(db_session)
        db_session.commit()

    def _reserve(self, quantity, material=None):
        material = material or self.steel
        return self.manager.reserve(self.work_order.id, [ReservationLine(material.id, Decimal(quantity))])[0]

    def test_full_consumption(self):
        reservation = self._reserve("60")

        consumptions = self.processor.consume(
            self.work_order.id, [ConsumptionLine(self.steel.id, Decimal("60"))], created_by="operator"
        )

        assert len(consumptions) == 1
        assert consumptions[0].quantity == Decimal("60")
        assert consumptions[0].reservation_id == reservation.id
        assert consumptions[0].created_by == "operator"

        self.db.refresh(reservation)
        assert reservation.status == "CONSUMED"
        assert reservation.remaining_quantity == 0
        assert self.calc.on_hand(self.steel.id) == Decimal("40")
        assert self.calc.net_available(self.steel.id) == Decimal("40")
        assert self.calc.verify_counter(self.steel.id) == 0

    def test_partial_consumption(self):
        reservation = self._reserve("60")

        self.processor.consume(self.work_order.id, [ConsumptionLine(self.steel.id, Decimal("20"))])

        self.db.refresh(reservation)
        assert reservation.status == "PARTIALLY_CONSUMED"
        assert reservation.remaining_quantity == Decimal("40")
        assert self.calc.on_hand(self.steel.id) == Decimal("80")
        assert self.calc.reserved(self.steel.id) == Decimal("40")
        assert self.calc.verify_counter(self.steel.id) == Decimal("40")

    def test_consumption_writes_stock_transaction_and_audit(self):
        self._reserve("60")

        self.processor.consume(self.work_order.id, [ConsumptionLine(self.steel.id, Decimal("25"))])

        txn = self.db.query(InventoryTransaction).filter(
            InventoryTransaction.transaction_type == "consumption"
        ).one()
        assert txn.quantity == Decimal("-25")
        assert txn.reference_type == "work_order"
        assert txn.reference_id == self.work_order.id

        entry = self.db.query(AuditLog).filter(AuditLog.action == "MATERIAL_CONSUMED").one()
        assert entry.old_value == {"quantity": "100"}
        assert entry.new_value == {"quantity": "75", "work_order_id": self.work_order.id}
        assert entry.reference_id == f"WO-{self.work_order.id}"

    def test_oldest_reservation_is_drawn_first(self):
        first = self._reserve("10")
        second = self._reserve("30")

        consumptions = self.processor.consume(self.work_order.id, [ConsumptionLine(self.steel.id, Decimal("15"))])

        assert [(c.reservation_id, c.quantity) for c in consumptions] == [
            (first.id, Decimal("10")),
            (second.id, Decimal("5")),
        ]
        self.db.refresh(first)
        self.db.refresh(second)
        assert first.status == "CONSUMED"
        assert second.status == "PARTIALLY_CONSUMED"
        assert second.remaining_quantity == Decimal("25")

    def test_default_location_is_depleted_first(self):
        overflow = create_test_location(self.db, code="OVERFLOW")
        create_test_inventory(self.db, self.steel, Decimal("50"), location=overflow)
        self.db.commit()
        self._reserve("120")

        self.processor.consume(self.work_order.id, [ConsumptionLine(self.steel.id, Decimal("120"))])

        rows = {
            row.location_id: row.on_hand_quantity
            for row in self.db.query(Inventory).filter(Inventory.material_id == self.steel.id)
        }
        assert rows[overflow.id] == Decimal("30")
        assert sum(rows.values()) == Decimal("30")
        assert self.db.query(InventoryTransaction).filter(
            InventoryTransaction.transaction_type == "consumption"
        ).count() == 2

    def test_no_active_reservation(self):
        with pytest.raises(ReservationNotFoundError) as exc_info:
            self.processor.consume(self.work_order.id, [ConsumptionLine(self.steel.id, Decimal("1"))])

        assert exc_info.value.error_kind == ErrorKind.NOT_FOUND
        assert exc_info.value.details["material_code"] == "STL-01"

    def test_more_than_reserved(self):
        self._reserve("30")

        with pytest.raises(InsufficientReservedQuantityError) as exc_info:
            self.processor.consume(self.work_order.id, [ConsumptionLine(self.steel.id, Decimal("31"))])

        assert exc_info.value.requested == Decimal("31")
        assert exc_info.value.reserved == Decimal("30")
        assert self.calc.on_hand(self.steel.id) == Decimal("100")

    def test_on_hand_short_rolls_back_everything(self):
        bolt = create_stocked_material(self.db, code="BLT-01", quantity=Decimal("10"))
        self.db.commit()
        self._reserve("40")
        self._reserve("10", material=bolt)

        # Stock lost outside the ledger after the reservation was taken
        row = self.db.query(Inventory).filter(Inventory.material_id == bolt.id).one()
        row.on_hand_quantity = Decimal("4")
        self.db.commit()

        with pytest.raises(InsufficientStockError) as exc_info:
            self.processor.consume(
                self.work_order.id,
                [
                    ConsumptionLine(self.steel.id, Decimal("40")),
                    ConsumptionLine(bolt.id, Decimal("10")),
                ],
            )

        assert exc_info.value.available == Decimal("4")
        # The steel line that succeeded first was rolled back with the rest
        assert self.calc.on_hand(self.steel.id) == Decimal("100")
        assert self.db.query(MaterialConsumption).count() == 0
        assert self.db.query(InventoryTransaction).count() == 0
        statuses = {r.status for r in self.db.query(MaterialReservation)}
        assert statuses == {"RESERVED"}

    def test_unknown_work_order(self):
        with pytest.raises(NotFoundError):
            self.processor.consume(9999, [ConsumptionLine(self.steel.id, Decimal("1"))])

    def test_invalid_quantity(self):
        self._reserve("10")
        with pytest.raises(ValidationError):
            self.processor.consume(self.work_order.id, [ConsumptionLine(self.steel.id, Decimal("0"))])

    def test_quantity_finer_than_stored_scale_rejected(self):
        self._reserve("10")

        with pytest.raises(ValidationError) as exc_info:
            self.processor.consume(self.work_order.id, [ConsumptionLine(self.steel.id, Decimal("1.00004"))])

        assert exc_info.value.details["field"] == "quantity"
        assert self.db.query(MaterialConsumption).count() == 0
        assert self.calc.on_hand(self.steel.id) == Decimal("100")

    def test_fractional_reserve_then_consume_conserves_quantity(self):
        reservation = self._reserve("1.0004")

        self.processor.consume(self.work_order.id, [ConsumptionLine(self.steel.id, Decimal("1.0004"))])

        self.db.refresh(reservation)
        assert reservation.status == "CONSUMED"
        assert reservation.remaining_quantity == 0
        assert self.calc.on_hand(self.steel.id) == Decimal("98.9996")
        assert self.calc.verify_counter(self.steel.id) == 0

    def test_repeated_material_lines_in_one_request(self):
        reservation = self._reserve("30")

        self.processor.consume(
            self.work_order.id,
            [
                ConsumptionLine(self.steel.id, Decimal("10")),
                ConsumptionLine(self.steel.id, Decimal("20")),
            ],
        )

        self.db.refresh(reservation)
        assert reservation.status == "CONSUMED"
        assert self.calc.on_hand(self.steel.id) == Decimal("70")
