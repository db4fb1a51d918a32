"""
Common API Response Schemas

Standardized error response shared by every endpoint.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response for all API errors.

    Error Codes:
        - VALIDATION_ERROR: Request validation failed (400/422)
        - NOT_FOUND: Work order or material not found (404)
        - RESERVATION_NOT_FOUND: No active reservation for a material (404)
        - INVALID_STATE: Reservation cannot make the requested transition (409)
        - INSUFFICIENT_STOCK: Net-available stock cannot cover the request (422)
        - INSUFFICIENT_RESERVED_QUANTITY: Consumption exceeds the reservation (422)
        - CONFIGURATION_ERROR / BOM_CYCLE / COUNTER_MISMATCH: Bad reference data (500)
        - DATABASE_ERROR: Database operation failed (500)
        - BUSY: Inventory rows locked by another request; retry (503)

    Example:
        {
            "error": "INSUFFICIENT_STOCK",
            "message": "Insufficient stock for material STL-01: requested 50, available 40",
            "kind": "insufficient_stock",
            "retryable": false,
            "details": {
                "material_id": "7",
                "material_code": "STL-01",
                "requested": "50",
                "available": "40"
            },
            "timestamp": "2026-01-05T10:30:00Z"
        }
    """
    error: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    kind: Optional[str] = Field(None, description="Error category")
    retryable: bool = Field(False, description="Whether the same request may succeed later")
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Entity and quantities involved"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the error occurred (UTC)"
    )
