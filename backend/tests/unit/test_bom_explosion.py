"""
Unit Tests for BOM Explosion

1. Single-level aggregation across lines and work order items
2. Multi-level expansion through sub-assemblies
3. Cycle and depth detection
4. Availability, shortage and fulfillment figures
"""
import pytest
from decimal import Decimal

from materials_engine.core.settings import get_settings
from materials_engine.exceptions import (
    BOMCycleError,
    ConfigurationError,
    NotFoundError,
    ValidationError,
)
from materials_engine.models import AuditLog, MaterialReservation
from materials_engine.services.bom_explosion import BOMExplosionService, fulfillment_percentage
from materials_engine.services.reservation_service import ReservationLine, ReservationManager

from tests.factories import (
    create_stocked_material,
    create_test_bom,
    create_test_material,
    create_test_product,
    create_test_work_order,
)


class TestFulfillmentPercentage:

    def test_zero_required_is_fully_covered(self):
        assert fulfillment_percentage(Decimal("0"), Decimal("0")) == Decimal("100.00")

    def test_no_net_stock_is_zero(self):
        assert fulfillment_percentage(Decimal("10"), Decimal("0")) == Decimal("0.00")
        assert fulfillment_percentage(Decimal("10"), Decimal("-5")) == Decimal("0.00")

    def test_partial_coverage(self):
        assert fulfillment_percentage(Decimal("3"), Decimal("1")) == Decimal("33.33")

    def test_capped_at_hundred(self):
        assert fulfillment_percentage(Decimal("10"), Decimal("500")) == Decimal("100.00")


class TestSingleLevelExplosion:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.service = BOMExplosionService(db_session)

    def test_requirements_scale_with_work_order_quantity(self):
        steel = create_stocked_material(self.db, code="STL-01", quantity=Decimal("100"))
        bolt = create_stocked_material(self.db, code="BLT-01", quantity=Decimal("10"))
        frame = create_test_product(self.db, code="FRAME")
        create_test_bom(self.db, frame, [(steel, Decimal("2.5")), (bolt, Decimal("4"))])
        wo = create_test_work_order(self.db, lines=[(frame, Decimal("10"))])
        self.db.commit()

        result = self.service.explode(wo.id)

        rows = {r.material_code: r for r in result.requirements}
        assert set(rows) == {"STL-01", "BLT-01"}

        assert rows["STL-01"].required_quantity == Decimal("25")
        assert rows["STL-01"].shortage == 0
        assert rows["STL-01"].can_fulfill is True
        assert rows["STL-01"].fulfillment_percentage == Decimal("100.00")

        assert rows["BLT-01"].required_quantity == Decimal("40")
        assert rows["BLT-01"].net_available == Decimal("10")
        assert rows["BLT-01"].shortage == Decimal("30")
        assert rows["BLT-01"].can_fulfill is False
        assert rows["BLT-01"].fulfillment_percentage == Decimal("25.00")

        assert result.summary.total_materials == 2
        assert result.summary.total_required_quantity == Decimal("65")
        assert result.summary.total_shortage == Decimal("30")
        assert result.summary.can_start_production is False
        # Unweighted mean of 100 and 25
        assert result.summary.fulfillment_percentage == Decimal("62.50")
        # (25 + 10) / 65
        assert result.summary.weighted_fulfillment_percentage == Decimal("53.85")

    def test_same_material_on_several_lines_is_aggregated(self):
        steel = create_stocked_material(self.db, code="STL-01", quantity=Decimal("100"))
        frame = create_test_product(self.db)
        panel = create_test_product(self.db)
        create_test_bom(self.db, frame, [(steel, Decimal("2"))])
        create_test_bom(self.db, panel, [(steel, Decimal("3"))])
        wo = create_test_work_order(self.db, lines=[(frame, Decimal("5")), (panel, Decimal("4"))])
        self.db.commit()

        result = self.service.explode(wo.id)

        assert len(result.requirements) == 1
        assert result.requirements[0].required_quantity == Decimal("22")
        assert result.summary.can_start_production is True

    def test_reserved_stock_reduces_net_available(self):
        steel = create_stocked_material(self.db, quantity=Decimal("100"))
        frame = create_test_product(self.db)
        create_test_bom(self.db, frame, [(steel, Decimal("1"))])
        other = create_test_work_order(self.db)
        wo = create_test_work_order(self.db, lines=[(frame, Decimal("50"))])
        self.db.commit()
        ReservationManager(self.db).reserve(other.id, [ReservationLine(steel.id, Decimal("70"))])

        row = self.service.explode(wo.id).requirements[0]

        assert row.on_hand == Decimal("100")
        assert row.reserved == Decimal("70")
        assert row.net_available == Decimal("30")
        assert row.shortage == Decimal("20")
        assert row.fulfillment_percentage == Decimal("60.00")

    def test_material_with_no_stock(self):
        paint = create_test_material(self.db)
        frame = create_test_product(self.db)
        create_test_bom(self.db, frame, [(paint, Decimal("1"))])
        wo = create_test_work_order(self.db, lines=[(frame, Decimal("3"))])
        self.db.commit()

        row = self.service.explode(wo.id).requirements[0]

        assert row.on_hand == 0
        assert row.shortage == Decimal("3")
        assert row.fulfillment_percentage == Decimal("0.00")

    def test_product_without_bom_has_no_requirements(self):
        frame = create_test_product(self.db)
        wo = create_test_work_order(self.db, lines=[(frame, Decimal("3"))])
        self.db.commit()

        result = self.service.explode(wo.id)

        assert result.requirements == []
        assert result.summary.total_materials == 0
        assert result.summary.can_start_production is True
        assert result.summary.fulfillment_percentage == Decimal("100.00")
        assert result.summary.weighted_fulfillment_percentage == Decimal("100.00")

    def test_explosion_writes_nothing(self):
        steel = create_stocked_material(self.db, quantity=Decimal("5"))
        frame = create_test_product(self.db)
        create_test_bom(self.db, frame, [(steel, Decimal("1"))])
        wo = create_test_work_order(self.db, lines=[(frame, Decimal("50"))])
        self.db.commit()

        self.service.explode(wo.id)

        assert self.db.query(MaterialReservation).count() == 0
        assert self.db.query(AuditLog).count() == 0
        assert not self.db.new and not self.db.dirty

    def test_missing_work_order(self):
        with pytest.raises(NotFoundError) as exc_info:
            self.service.explode(9999)
        assert exc_info.value.message == "WorkOrder with ID 9999 not found"

    def test_work_order_without_lines(self):
        wo = create_test_work_order(self.db)
        self.db.commit()

        with pytest.raises(ValidationError):
            self.service.explode(wo.id)


class TestMultiLevelExplosion:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.service = BOMExplosionService(db_session)

    def test_sub_assembly_expands_to_leaf_materials(self):
        steel = create_stocked_material(self.db, code="STL-01", quantity=Decimal("1000"))
        paint = create_stocked_material(self.db, code="PNT-01", quantity=Decimal("1000"))
        wheel = create_test_material(self.db, code="WHL-01")
        wheel_builder = create_test_product(self.db, code="WHEEL-ASM", produces=wheel)
        create_test_bom(self.db, wheel_builder, [(steel, Decimal("3"))])

        cart = create_test_product(self.db, code="CART")
        create_test_bom(self.db, cart, [(wheel, Decimal("4")), (paint, Decimal("0.5"))])
        wo = create_test_work_order(self.db, lines=[(cart, Decimal("2"))])
        self.db.commit()

        result = self.service.explode(wo.id)
        rows = {r.material_code: r for r in result.requirements}

        # The wheel is built, not stocked: only its materials are required
        assert set(rows) == {"STL-01", "PNT-01"}
        assert rows["STL-01"].required_quantity == Decimal("24")
        assert rows["STL-01"].bom_level == 1
        assert rows["PNT-01"].required_quantity == Decimal("1")
        assert rows["PNT-01"].bom_level == 0

    def test_shared_material_direct_and_through_sub_assembly(self):
        raw = create_stocked_material(self.db, code="RAW-X", quantity=Decimal("100"))
        sub = create_test_material(self.db, code="SUB-X")
        sub_builder = create_test_product(self.db, produces=sub)
        create_test_bom(self.db, sub_builder, [(raw, Decimal("3"))])

        top = create_test_product(self.db)
        create_test_bom(self.db, top, [(raw, Decimal("2")), (sub, Decimal("1"))])
        wo = create_test_work_order(self.db, lines=[(top, Decimal("1"))])
        self.db.commit()

        result = self.service.explode(wo.id)

        assert len(result.requirements) == 1
        assert result.requirements[0].material_code == "RAW-X"
        assert result.requirements[0].required_quantity == Decimal("5")

    def test_sub_assembly_builder_without_bom_is_a_leaf(self):
        bought = create_stocked_material(self.db, code="BOUGHT", quantity=Decimal("10"))
        create_test_product(self.db, produces=bought)
        top = create_test_product(self.db)
        create_test_bom(self.db, top, [(bought, Decimal("2"))])
        wo = create_test_work_order(self.db, lines=[(top, Decimal("1"))])
        self.db.commit()

        result = self.service.explode(wo.id)

        assert [r.material_code for r in result.requirements] == ["BOUGHT"]

    def test_cycle_is_a_configuration_error(self):
        mat_a = create_test_material(self.db, code="MAT-A")
        mat_b = create_test_material(self.db, code="MAT-B")
        builds_a = create_test_product(self.db, code="ASM-A", produces=mat_a)
        builds_b = create_test_product(self.db, code="ASM-B", produces=mat_b)
        create_test_bom(self.db, builds_a, [(mat_b, Decimal("1"))])
        create_test_bom(self.db, builds_b, [(mat_a, Decimal("1"))])
        top = create_test_product(self.db, code="TOP")
        create_test_bom(self.db, top, [(mat_a, Decimal("1"))])
        wo = create_test_work_order(self.db, lines=[(top, Decimal("1"))])
        self.db.commit()

        with pytest.raises(BOMCycleError) as exc_info:
            self.service.explode(wo.id)

        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.retryable is False
        assert exc_info.value.details["path"] == ["TOP", "ASM-A", "ASM-B", "ASM-A"]

    def test_depth_limit(self, monkeypatch):
        leaf = create_stocked_material(self.db)
        parent_material = create_test_material(self.db)
        builder = create_test_product(self.db, produces=parent_material)
        create_test_bom(self.db, builder, [(leaf, Decimal("1"))])
        top = create_test_product(self.db)
        create_test_bom(self.db, top, [(parent_material, Decimal("1"))])
        wo = create_test_work_order(self.db, lines=[(top, Decimal("1"))])
        self.db.commit()

        monkeypatch.setattr(get_settings(), "BOM_MAX_DEPTH", 1)

        with pytest.raises(ConfigurationError):
            BOMExplosionService(self.db).explode(wo.id)
