"""
Three-Way Match

Compares purchase order, goods receipt (GRN) and supplier invoice figures
per item. Quantity, unit price and total variances are measured between
the GRN and the invoice as a percentage of the GRN figure; any variance
above the tolerance marks the item as an exception.

Pure computation over the figures passed in.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from materials_engine.core.settings import get_settings
from materials_engine.exceptions import ValidationError
from materials_engine.logging_config import get_logger

logger = get_logger(__name__)

MATCHED = "MATCHED"
EXCEPTION = "EXCEPTION"

HUNDRED = Decimal("100")
_PLACES = Decimal("0.01")


@dataclass
class MatchItem:
    item_code: str
    po_quantity: Decimal
    po_unit_price: Decimal
    grn_quantity_accepted: Decimal
    grn_unit_price: Decimal
    invoice_quantity: Decimal
    invoice_unit_price: Decimal
    item_name: Optional[str] = None


@dataclass
class ItemMatchResult:
    item_code: str
    item_name: Optional[str]
    match_status: str
    po_total: Decimal
    grn_total: Decimal
    invoice_total: Decimal
    quantity_variance: Decimal
    price_variance: Decimal
    total_variance: Decimal
    exceptions: List[str] = field(default_factory=list)


@dataclass
class MatchSummary:
    total_items: int
    matched_count: int
    exception_count: int
    match_percentage: Decimal


@dataclass
class ThreeWayMatchResult:
    tolerance_percentage: Decimal
    items: List[ItemMatchResult]
    summary: MatchSummary


def variance_percent(base: Decimal, actual: Decimal) -> Optional[Decimal]:
    """
    |base - actual| as a percentage of base.

    None when base is zero and actual is not (the variance is unbounded);
    zero when both are zero.
    """
    difference = abs(base - actual)
    if base == 0:
        return Decimal("0") if difference == 0 else None
    return (difference / abs(base) * HUNDRED).quantize(_PLACES, rounding=ROUND_HALF_UP)


def match_item(item: MatchItem, tolerance: Decimal) -> ItemMatchResult:
    grn_total = item.grn_quantity_accepted * item.grn_unit_price
    invoice_total = item.invoice_quantity * item.invoice_unit_price

    checks = [
        ("Quantity", variance_percent(item.grn_quantity_accepted, item.invoice_quantity)),
        ("Price", variance_percent(item.grn_unit_price, item.invoice_unit_price)),
        ("Total", variance_percent(grn_total, invoice_total)),
    ]

    exceptions = []
    for label, percent in checks:
        if percent is None:
            exceptions.append(f"{label} variance: receipt figure is zero")
        elif percent > tolerance:
            exceptions.append(f"{label} variance: {percent}%")

    return ItemMatchResult(
        item_code=item.item_code,
        item_name=item.item_name,
        match_status=EXCEPTION if exceptions else MATCHED,
        po_total=item.po_quantity * item.po_unit_price,
        grn_total=grn_total,
        invoice_total=invoice_total,
        quantity_variance=checks[0][1] if checks[0][1] is not None else HUNDRED,
        price_variance=checks[1][1] if checks[1][1] is not None else HUNDRED,
        total_variance=checks[2][1] if checks[2][1] is not None else HUNDRED,
        exceptions=exceptions,
    )


def perform_three_way_match(
    items: List[MatchItem],
    tolerance_percentage: Optional[Decimal] = None,
) -> ThreeWayMatchResult:
    """Match every item; tolerance defaults to MATCH_TOLERANCE_PERCENT."""
    if not items:
        raise ValidationError("At least one item is required for matching", field="items")

    tolerance = (
        get_settings().match_tolerance if tolerance_percentage is None else Decimal(str(tolerance_percentage))
    )
    if tolerance < 0:
        raise ValidationError("Tolerance cannot be negative", field="tolerance_percentage", value=tolerance)

    results = [match_item(item, tolerance) for item in items]
    matched = sum(1 for r in results if r.match_status == MATCHED)
    summary = MatchSummary(
        total_items=len(results),
        matched_count=matched,
        exception_count=len(results) - matched,
        match_percentage=(Decimal(matched) / len(results) * HUNDRED).quantize(_PLACES, rounding=ROUND_HALF_UP),
    )

    logger.info(
        "Three-way matching completed",
        extra={
            "total_items": summary.total_items,
            "matched_count": summary.matched_count,
            "exception_count": summary.exception_count,
        },
    )
    return ThreeWayMatchResult(tolerance_percentage=tolerance, items=results, summary=summary)
