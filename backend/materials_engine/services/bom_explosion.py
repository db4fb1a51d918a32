"""
BOM Explosion Service

Turns a work order into the list of leaf materials it needs, with current
availability for each. A BOM line whose material is produced in-house
(a Product with material_id set and its own BOM lines) is expanded through
that product's BOM; only materials that are not built themselves appear as
requirements.

Pure read: nothing is written.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from materials_engine.core.settings import get_settings
from materials_engine.exceptions import (
    BOMCycleError,
    ConfigurationError,
    NotFoundError,
    ValidationError,
)
from materials_engine.logging_config import get_logger
from materials_engine.models.material import Material, Product
from materials_engine.models.work_order import WorkOrder
from materials_engine.services.availability import AvailabilityCalculator, to_decimal

logger = get_logger(__name__)

HUNDRED = Decimal("100")
PERCENT_PLACES = Decimal("0.01")


def _percent(value: Decimal) -> Decimal:
    return value.quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)


def fulfillment_percentage(required: Decimal, net_available: Decimal) -> Decimal:
    """
    Share of a requirement that current net stock covers, capped at 100.

    100 when nothing is required; 0 when net availability is zero or negative.
    """
    if required <= 0:
        return _percent(HUNDRED)
    if net_available <= 0:
        return _percent(Decimal("0"))
    return _percent(min(HUNDRED, net_available / required * HUNDRED))


@dataclass
class MaterialRequirement:
    """Demand for one leaf material, aggregated over all lines and BOM paths"""
    material_id: int
    material_code: str
    material_name: str
    unit: str
    required_quantity: Decimal
    bom_level: int
    on_hand: Decimal
    reserved: Decimal
    net_available: Decimal
    shortage: Decimal
    can_fulfill: bool
    fulfillment_percentage: Decimal


@dataclass
class ExplosionSummary:
    total_materials: int
    total_required_quantity: Decimal
    total_shortage: Decimal
    can_start_production: bool
    fulfillment_percentage: Decimal
    weighted_fulfillment_percentage: Decimal


@dataclass
class BOMExplosionResult:
    work_order_id: int
    work_order_code: str
    requirements: List[MaterialRequirement] = field(default_factory=list)
    summary: Optional[ExplosionSummary] = None


class BOMExplosionService:
    """Explodes work orders into material requirements."""

    def __init__(self, db: Session):
        self.db = db
        self.availability = AvailabilityCalculator(db)
        self.max_depth = get_settings().BOM_MAX_DEPTH
        self._builders: Dict[int, Optional[Product]] = {}

    def explode(self, work_order_id: int) -> BOMExplosionResult:
        """
        Explode every line of a work order.

        Raises:
            NotFoundError: work order does not exist
            ValidationError: work order has no line items, or a line has no product
            BOMCycleError: a product's BOM reaches back to itself
            ConfigurationError: sub-assembly nesting deeper than BOM_MAX_DEPTH
        """
        work_order = self.db.get(WorkOrder, work_order_id)
        if not work_order:
            raise NotFoundError("WorkOrder", work_order_id)
        if not work_order.lines:
            raise ValidationError(
                f"Work order {work_order.code} has no line items",
                field="lines",
            )

        # material_id -> (required quantity, deepest level reached)
        demand: "OrderedDict[int, Tuple[Decimal, int]]" = OrderedDict()
        for line in work_order.lines:
            if line.product is None:
                raise ValidationError(
                    f"Work order {work_order.code} line {line.id} has no product",
                    field="product_id",
                    value=line.product_id,
                )
            self._expand(line.product, to_decimal(line.quantity), 0, (), demand)

        requirements = [
            self._requirement(material_id, required, level)
            for material_id, (required, level) in demand.items()
        ]
        result = BOMExplosionResult(
            work_order_id=work_order.id,
            work_order_code=work_order.code,
            requirements=requirements,
            summary=self._summarize(requirements),
        )

        logger.info(
            "BOM exploded",
            extra={
                "work_order_id": work_order.id,
                "total_materials": result.summary.total_materials,
                "total_shortage": result.summary.total_shortage,
            },
        )
        return result

    def _builder_of(self, material_id: int) -> Optional[Product]:
        """Product that builds this material from its own BOM, if any."""
        if material_id not in self._builders:
            product = self.db.query(Product).filter(Product.material_id == material_id).first()
            self._builders[material_id] = product if product and product.bom_lines else None
        return self._builders[material_id]

    def _expand(
        self,
        product: Product,
        quantity: Decimal,
        level: int,
        path: Tuple[Product, ...],
        demand: Dict[int, Tuple[Decimal, int]],
    ) -> None:
        if any(p.id == product.id for p in path):
            raise BOMCycleError([p.code for p in path] + [product.code])
        if level >= self.max_depth:
            raise ConfigurationError(
                f"BOM of {path[0].code if path else product.code} nests deeper than {self.max_depth} levels",
                details={"product_id": str(product.id), "max_depth": self.max_depth},
            )

        path = path + (product,)
        for line in product.bom_lines:
            line_qty = quantity * to_decimal(line.quantity_per_unit)
            builder = self._builder_of(line.material_id)
            if builder is not None:
                self._expand(builder, line_qty, level + 1, path, demand)
                continue

            required, deepest = demand.get(line.material_id, (Decimal("0"), level))
            demand[line.material_id] = (required + line_qty, max(deepest, level))

    def _requirement(self, material_id: int, required: Decimal, level: int) -> MaterialRequirement:
        material = self.db.get(Material, material_id)
        snapshot = self.availability.snapshot(material_id)
        shortage = max(Decimal("0"), required - snapshot.net_available)
        return MaterialRequirement(
            material_id=material_id,
            material_code=material.code if material else str(material_id),
            material_name=material.name if material else "",
            unit=material.unit if material else "EA",
            required_quantity=required,
            bom_level=level,
            on_hand=snapshot.on_hand,
            reserved=snapshot.reserved,
            net_available=snapshot.net_available,
            shortage=shortage,
            can_fulfill=shortage == 0,
            fulfillment_percentage=fulfillment_percentage(required, snapshot.net_available),
        )

    def _summarize(self, requirements: List[MaterialRequirement]) -> ExplosionSummary:
        total_required = sum((r.required_quantity for r in requirements), Decimal("0"))
        total_shortage = sum((r.shortage for r in requirements), Decimal("0"))

        if requirements:
            mean = sum((r.fulfillment_percentage for r in requirements), Decimal("0")) / len(requirements)
        else:
            # Nothing to fulfill
            mean = HUNDRED

        if total_required > 0:
            covered = sum(
                (min(r.required_quantity, max(r.net_available, Decimal("0"))) for r in requirements),
                Decimal("0"),
            )
            weighted = covered / total_required * HUNDRED
        else:
            weighted = HUNDRED

        return ExplosionSummary(
            total_materials=len(requirements),
            total_required_quantity=total_required,
            total_shortage=total_shortage,
            can_start_production=total_shortage == 0,
            fulfillment_percentage=_percent(mean),
            weighted_fulfillment_percentage=_percent(weighted),
        )
