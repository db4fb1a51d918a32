"""
Three-Way Match Endpoint
"""
from fastapi import APIRouter

from materials_engine.schemas.three_way_match import ThreeWayMatchRequest, ThreeWayMatchResponse
from materials_engine.services.three_way_match import MatchItem, perform_three_way_match

router = APIRouter(prefix="/matching", tags=["Matching"])


@router.post("/three-way", response_model=ThreeWayMatchResponse)
def three_way_match(request: ThreeWayMatchRequest):
    """
    Match PO, goods receipt and invoice figures per item.

    An item is an EXCEPTION when its quantity, unit price or total variance
    (invoice against receipt) exceeds the tolerance; otherwise MATCHED.
    """
    items = [
        MatchItem(
            item_code=item.item_code,
            item_name=item.item_name,
            po_quantity=item.po_quantity,
            po_unit_price=item.po_unit_price,
            grn_quantity_accepted=item.grn_quantity_accepted,
            grn_unit_price=item.grn_unit_price if item.grn_unit_price is not None else item.po_unit_price,
            invoice_quantity=item.invoice_quantity,
            invoice_unit_price=item.invoice_unit_price,
        )
        for item in request.items
    ]
    result = perform_three_way_match(items, request.tolerance_percentage)
    return ThreeWayMatchResponse.model_validate(result)
