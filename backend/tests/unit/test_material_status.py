"""
Unit Tests for WorkOrderMaterialStatusService
"""
import pytest
from decimal import Decimal

from materials_engine.exceptions import NotFoundError
from materials_engine.services.consumption_service import ConsumptionLine, ConsumptionProcessor
from materials_engine.services.material_status import WorkOrderMaterialStatusService
from materials_engine.services.reservation_service import ReservationLine, ReservationManager

from tests.factories import create_stocked_material, create_test_work_order


class TestMaterialStatus:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.service = WorkOrderMaterialStatusService(db_session)
        self.steel = create_stocked_material(db_session, code="STL-01", quantity=Decimal("100"))
        self.bolt = create_stocked_material(db_session, code="BLT-01", quantity=Decimal("50"))
        self.work_order = create_test_work_order(db_session, code="WO-STATUS")
        db_session.commit()

    def test_empty_work_order(self):
        status = self.service.status(self.work_order.id)

        assert status.work_order_code == "WO-STATUS"
        assert status.total_reserved == 0
        assert status.total_consumed == 0
        assert status.reservation_count == 0
        assert status.consumption_count == 0

    def test_reserved_consumed_and_released(self):
        ReservationManager(self.db).reserve(self.work_order.id, [
            ReservationLine(self.steel.id, Decimal("40")),
            ReservationLine(self.bolt.id, Decimal("10")),
        ])
        ConsumptionProcessor(self.db).consume(
            self.work_order.id, [ConsumptionLine(self.steel.id, Decimal("25"))]
        )

        status = self.service.status(self.work_order.id)
        assert status.total_reserved == Decimal("50")
        assert status.total_consumed == Decimal("25")
        assert status.remaining_reserved == Decimal("25")
        assert status.active_reserved == Decimal("25")
        assert status.total_released == 0
        assert status.reservation_count == 2
        assert status.consumption_count == 1

        ReservationManager(self.db).release(self.work_order.id)

        status = self.service.status(self.work_order.id)
        # released quantities stay in the lifetime totals
        assert status.total_reserved == Decimal("50")
        assert status.remaining_reserved == Decimal("25")
        assert status.total_released == Decimal("25")
        assert status.active_reserved == 0

    def test_unknown_work_order(self):
        with pytest.raises(NotFoundError):
            self.service.status(9999)
