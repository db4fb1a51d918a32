"""
Unit Tests for ReservationManager

Reserve: validation, all-or-nothing batches, counter and audit writes.
Release: remaining quantity only, idempotence.
"""
import pytest
from decimal import Decimal

from materials_engine.exceptions import (
    ErrorKind,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from materials_engine.models import AuditLog, MaterialReservation
from materials_engine.services import reservation_service
from materials_engine.services.availability import AvailabilityCalculator
from materials_engine.services.consumption_service import ConsumptionLine, ConsumptionProcessor
from materials_engine.services.reservation_service import ReservationLine, ReservationManager

from tests.factories import create_stocked_material, create_test_material, create_test_work_order


class TestReserve:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.manager = ReservationManager(db_session)
        self.calc = AvailabilityCalculator(db_session)
        self.steel = create_stocked_material(db_session, code="STL-01", quantity=Decimal("100"))
        self.bolt = create_stocked_material(db_session, code="BLT-01", quantity=Decimal("20"))
        self.work_order = create_test_work_order(db_session)
        db_session.commit()

    def test_reserve_creates_reserved_rows(self):
        reservations = self.manager.reserve(
            self.work_order.id,
            [
                ReservationLine(self.steel.id, Decimal("60"), "HIGH"),
                ReservationLine(self.bolt.id, Decimal("8")),
            ],
            created_by="planner",
        )

        assert len(reservations) == 2
        first = reservations[0]
        assert first.status == "RESERVED"
        assert first.priority == "HIGH"
        assert first.created_by == "planner"
        assert first.quantity == Decimal("60")
        assert first.remaining_quantity == Decimal("60")
        assert reservations[1].priority == "NORMAL"

        assert self.calc.net_available(self.steel.id) == Decimal("40")
        assert self.calc.net_available(self.bolt.id) == Decimal("12")
        assert self.calc.verify_counter(self.steel.id) == Decimal("60")

    def test_default_actor_is_system(self):
        reservation = self.manager.reserve(self.work_order.id, [ReservationLine(self.steel.id, Decimal("1"))])[0]
        assert reservation.created_by == "system"

    def test_reserve_writes_audit_row_per_reservation(self):
        reservation = self.manager.reserve(
            self.work_order.id, [ReservationLine(self.steel.id, Decimal("60"))], created_by="planner"
        )[0]

        entry = self.db.query(AuditLog).filter(AuditLog.action == "MATERIAL_RESERVED").one()
        assert entry.actor == "planner"
        assert entry.entity_type == "material"
        assert entry.entity_id == str(self.steel.id)
        assert entry.old_value == {"reserved_quantity": 0}
        assert entry.new_value == {"reserved_quantity": "60", "work_order_id": self.work_order.id}
        assert entry.additional_data["reservation_id"] == reservation.id

    def test_insufficient_stock_aborts_whole_batch(self):
        with pytest.raises(InsufficientStockError) as exc_info:
            self.manager.reserve(
                self.work_order.id,
                [
                    ReservationLine(self.steel.id, Decimal("10")),
                    ReservationLine(self.bolt.id, Decimal("25")),
                ],
            )

        error = exc_info.value
        assert error.error_kind == ErrorKind.INSUFFICIENT_STOCK
        assert error.details["material_code"] == "BLT-01"
        assert error.requested == Decimal("25")
        assert error.available == Decimal("20")

        assert self.db.query(MaterialReservation).count() == 0
        assert self.db.query(AuditLog).count() == 0
        assert self.calc.net_available(self.steel.id) == Decimal("100")
        assert self.calc.allocated_counter(self.steel.id) == 0

    def test_lines_for_same_material_are_summed(self):
        with pytest.raises(InsufficientStockError) as exc_info:
            self.manager.reserve(
                self.work_order.id,
                [
                    ReservationLine(self.bolt.id, Decimal("12")),
                    ReservationLine(self.bolt.id, Decimal("12")),
                ],
            )
        assert exc_info.value.requested == Decimal("24")

    def test_exact_available_quantity_can_be_reserved(self):
        self.manager.reserve(self.work_order.id, [ReservationLine(self.bolt.id, Decimal("20"))])
        assert self.calc.net_available(self.bolt.id) == 0

    def test_material_without_inventory_rows(self):
        unstocked = create_test_material(self.db)
        self.db.commit()

        with pytest.raises(InsufficientStockError) as exc_info:
            self.manager.reserve(self.work_order.id, [ReservationLine(unstocked.id, Decimal("1"))])
        assert exc_info.value.available == 0

    @pytest.mark.parametrize("quantity", [
        Decimal("0"), Decimal("-5"), "abc", Decimal("NaN"), Decimal("1.00004"), Decimal("0.00001"),
    ])
    def test_invalid_quantity(self, quantity):
        with pytest.raises(ValidationError):
            self.manager.reserve(self.work_order.id, [ReservationLine(self.steel.id, quantity)])
        assert self.db.query(MaterialReservation).count() == 0

    def test_quantity_at_stored_scale_round_trips(self):
        reservation = self.manager.reserve(
            self.work_order.id, [ReservationLine(self.steel.id, Decimal("1.00040"))]
        )[0]

        self.db.refresh(reservation)
        assert reservation.quantity == Decimal("1.0004")
        assert self.calc.reserved(self.steel.id) == Decimal("1.0004")

    def test_invalid_priority(self):
        with pytest.raises(ValidationError) as exc_info:
            self.manager.reserve(self.work_order.id, [ReservationLine(self.steel.id, Decimal("1"), "ASAP")])
        assert exc_info.value.details["field"] == "priority"

    def test_empty_request(self):
        with pytest.raises(ValidationError):
            self.manager.reserve(self.work_order.id, [])

    def test_unknown_work_order(self):
        with pytest.raises(NotFoundError) as exc_info:
            self.manager.reserve(9999, [ReservationLine(self.steel.id, Decimal("1"))])
        assert exc_info.value.details["resource"] == "WorkOrder"
        assert self.db.query(MaterialReservation).count() == 0

    def test_unknown_material(self):
        with pytest.raises(NotFoundError) as exc_info:
            self.manager.reserve(self.work_order.id, [ReservationLine(9999, Decimal("1"))])
        assert exc_info.value.details["resource"] == "Material"


class TestRelease:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.manager = ReservationManager(db_session)
        self.calc = AvailabilityCalculator(db_session)
        self.steel = create_stocked_material(db_session, quantity=Decimal("100"))
        self.work_order = create_test_work_order(db_session)
        db_session.commit()

    def test_release_returns_remaining_to_availability(self):
        self.manager.reserve(self.work_order.id, [ReservationLine(self.steel.id, Decimal("60"))])

        released = self.manager.release(self.work_order.id, released_by="supervisor")

        assert len(released) == 1
        assert released[0].status == "RELEASED"
        assert released[0].released_quantity == Decimal("60")
        assert released[0].released_by == "supervisor"
        assert released[0].released_at is not None
        assert self.calc.net_available(self.steel.id) == Decimal("100")
        assert self.calc.verify_counter(self.steel.id) == 0

    def test_release_after_partial_consumption_releases_remainder_only(self):
        self.manager.reserve(self.work_order.id, [ReservationLine(self.steel.id, Decimal("60"))])
        ConsumptionProcessor(self.db).consume(self.work_order.id, [ConsumptionLine(self.steel.id, Decimal("20"))])

        released = self.manager.release(self.work_order.id)

        assert released[0].released_quantity == Decimal("40")
        assert released[0].consumed_quantity == Decimal("20")
        assert released[0].quantity == Decimal("60")
        entry = self.db.query(AuditLog).filter(AuditLog.action == "MATERIAL_RESERVATION_RELEASED").one()
        assert entry.old_value == {"status": "PARTIALLY_CONSUMED", "remaining_quantity": "40"}

    def test_release_is_idempotent(self):
        self.manager.reserve(self.work_order.id, [ReservationLine(self.steel.id, Decimal("60"))])
        self.manager.release(self.work_order.id)
        snapshot_before = self.calc.snapshot(self.steel.id)

        assert self.manager.release(self.work_order.id) == []

        assert self.calc.snapshot(self.steel.id) == snapshot_before
        assert self.db.query(AuditLog).filter(AuditLog.action == "MATERIAL_RESERVATION_RELEASED").count() == 1

    def test_release_unknown_work_order_is_empty(self):
        assert self.manager.release(9999) == []

    def test_fully_consumed_reservations_are_not_released(self):
        self.manager.reserve(self.work_order.id, [ReservationLine(self.steel.id, Decimal("60"))])
        ConsumptionProcessor(self.db).consume(self.work_order.id, [ConsumptionLine(self.steel.id, Decimal("60"))])

        assert self.manager.release(self.work_order.id) == []
        reservation = self.db.query(MaterialReservation).one()
        assert reservation.status == "CONSUMED"

    def test_material_reserved_after_first_read_is_locked_before_release(self, monkeypatch):
        bolt = create_stocked_material(self.db, quantity=Decimal("20"))
        self.db.commit()
        self.manager.reserve(self.work_order.id, [
            ReservationLine(self.steel.id, Decimal("10")),
            ReservationLine(bolt.id, Decimal("5")),
        ])

        lock_calls = []
        real_lock = reservation_service.lock_material_rows

        def recording_lock(db, material_ids):
            lock_calls.append(sorted(material_ids))
            return real_lock(db, material_ids)

        real_active = self.manager.active_reservations
        reads = []

        def active_reservations(work_order_id, material_id=None):
            rows = real_active(work_order_id, material_id)
            reads.append(work_order_id)
            if len(reads) == 1:
                # the bolt reservation lands after the unlocked first read
                return [r for r in rows if r.material_id == self.steel.id]
            return rows

        monkeypatch.setattr(reservation_service, "lock_material_rows", recording_lock)
        monkeypatch.setattr(self.manager, "active_reservations", active_reservations)

        released = self.manager.release(self.work_order.id)

        assert lock_calls == [[self.steel.id], sorted([self.steel.id, bolt.id])]
        assert {r.material_id for r in released} == {self.steel.id, bolt.id}
        assert self.calc.verify_counter(self.steel.id) == 0
        assert self.calc.verify_counter(bolt.id) == 0
