"""
Three-Way Match Pydantic Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from decimal import Decimal


class MatchItemRequest(BaseModel):
    """PO, goods receipt and invoice figures for one item"""
    item_code: str = Field(..., min_length=1, max_length=50)
    item_name: Optional[str] = None
    po_quantity: Decimal = Field(..., ge=0)
    po_unit_price: Decimal = Field(..., ge=0)
    grn_quantity_accepted: Decimal = Field(..., ge=0)
    grn_unit_price: Optional[Decimal] = Field(None, ge=0, description="Defaults to the PO unit price")
    invoice_quantity: Decimal = Field(..., ge=0)
    invoice_unit_price: Decimal = Field(..., ge=0)


class ThreeWayMatchRequest(BaseModel):
    items: List[MatchItemRequest] = Field(..., min_length=1)
    tolerance_percentage: Optional[Decimal] = Field(None, ge=0, le=100)


class ItemMatchResponse(BaseModel):
    item_code: str
    item_name: Optional[str] = None
    match_status: str
    po_total: Decimal
    grn_total: Decimal
    invoice_total: Decimal
    quantity_variance: Decimal
    price_variance: Decimal
    total_variance: Decimal
    exceptions: List[str]

    class Config:
        from_attributes = True


class MatchSummaryResponse(BaseModel):
    total_items: int
    matched_count: int
    exception_count: int
    match_percentage: Decimal

    class Config:
        from_attributes = True


class ThreeWayMatchResponse(BaseModel):
    tolerance_percentage: Decimal
    items: List[ItemMatchResponse]
    summary: MatchSummaryResponse

    class Config:
        from_attributes = True
