"""
Materials Engine - Custom Exception Hierarchy

Provides structured, typed exceptions with error codes for consistent
error handling across the engine and its HTTP adapter.

Every exception carries:
- error_code: machine-readable code for API responses
- status_code: HTTP status the adapter returns
- error_kind: the coarse category callers branch on (see ErrorKind)
- retryable: whether the same call may succeed later without changing input

Usage:
    from materials_engine.exceptions import NotFoundError, InsufficientStockError

    raise NotFoundError("WorkOrder", work_order_id)
    raise InsufficientStockError(material_id=7, material_code="STL-01",
                                 requested=Decimal("50"), available=Decimal("40"))
"""
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Error categories the engine reports."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    INSUFFICIENT_STOCK = "insufficient_stock"
    INSUFFICIENT_RESERVED = "insufficient_reserved"
    BUSY = "busy"
    CONFIGURATION = "configuration"
    TRANSIENT = "transient"


def _num(value: Any) -> Any:
    """Render quantities for JSON details without float rounding."""
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    return value


class MaterialsEngineException(Exception):
    """
    Base exception for all Materials Engine errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "NOT_FOUND")
        status_code: HTTP status code to return
        details: Additional context naming the entity and quantities involved
    """

    error_code: str = "MATERIALS_ENGINE_ERROR"
    status_code: int = 500
    error_kind: ErrorKind = ErrorKind.TRANSIENT
    retryable: bool = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result = {
            "error": self.error_code,
            "message": self.message,
            "kind": self.error_kind.value,
            "retryable": self.retryable,
        }
        if self.details:
            result["details"] = self.details
        return result


# ===================
# 400 Bad Request Errors
# ===================


class ValidationError(MaterialsEngineException):
    """Raised when input validation fails."""

    error_code = "VALIDATION_ERROR"
    status_code = 400
    error_kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details=details)


# ===================
# 404 Not Found Errors
# ===================


class NotFoundError(MaterialsEngineException):
    """Raised when a resource is not found."""

    error_code = "NOT_FOUND"
    status_code = 404
    error_kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Any = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(message, details=details)


class ReservationNotFoundError(NotFoundError):
    """Raised when a work order holds no active reservation for a material."""

    error_code = "RESERVATION_NOT_FOUND"

    def __init__(
        self,
        work_order_id: Any,
        material_id: Any,
        *,
        material_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["work_order_id"] = str(work_order_id)
        details["material_id"] = str(material_id)
        if material_code:
            details["material_code"] = material_code
        super().__init__("MaterialReservation", details=details)
        label = material_code or material_id
        self.message = (
            f"No active reservation found for material {label} in work order {work_order_id}"
        )
        self.args = (self.message,)


# ===================
# 409 Conflict Errors
# ===================


class InvalidStateError(MaterialsEngineException):
    """Raised when an operation is invalid for the current state."""

    error_code = "INVALID_STATE"
    status_code = 409
    error_kind = ErrorKind.INVALID_STATE

    def __init__(
        self,
        message: str = "Operation not allowed in current state",
        *,
        current_state: Optional[str] = None,
        allowed_states: Optional[list] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if current_state:
            details["current_state"] = current_state
        if allowed_states is not None:
            details["allowed_states"] = allowed_states
        super().__init__(message, details=details)


# ===================
# 422 Business Rule Errors
# ===================


class BusinessRuleError(MaterialsEngineException):
    """Raised when a business rule is violated."""

    error_code = "BUSINESS_RULE_ERROR"
    status_code = 422
    error_kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str = "Business rule violation",
        *,
        rule: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if rule:
            details["rule"] = rule
        super().__init__(message, details=details)


class InsufficientStockError(BusinessRuleError):
    """Raised when net-available (or on-hand) stock cannot cover a request."""

    error_code = "INSUFFICIENT_STOCK"
    error_kind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(
        self,
        *,
        material_id: Any,
        requested: Decimal,
        available: Decimal,
        material_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.material_id = material_id
        self.requested = requested
        self.available = available
        details = details or {}
        details["material_id"] = str(material_id)
        if material_code:
            details["material_code"] = material_code
        details["requested"] = _num(requested)
        details["available"] = _num(available)
        label = material_code or material_id
        message = (
            f"Insufficient stock for material {label}: "
            f"requested {_num(requested)}, available {_num(available)}"
        )
        super().__init__(message, details=details)


class InsufficientReservedQuantityError(BusinessRuleError):
    """Raised when a consumption asks for more than the reservation still holds."""

    error_code = "INSUFFICIENT_RESERVED_QUANTITY"
    error_kind = ErrorKind.INSUFFICIENT_RESERVED

    def __init__(
        self,
        *,
        work_order_id: Any,
        material_id: Any,
        requested: Decimal,
        reserved: Decimal,
        material_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.material_id = material_id
        self.requested = requested
        self.reserved = reserved
        details = details or {}
        details["work_order_id"] = str(work_order_id)
        details["material_id"] = str(material_id)
        if material_code:
            details["material_code"] = material_code
        details["requested"] = _num(requested)
        details["reserved"] = _num(reserved)
        label = material_code or material_id
        message = (
            f"Insufficient reserved quantity for material {label}: "
            f"reserved {_num(reserved)}, consuming {_num(requested)}"
        )
        super().__init__(message, details=details)


# ===================
# 500 Configuration Errors
# ===================


class ConfigurationError(MaterialsEngineException):
    """Raised when reference data is inconsistent. Requires operator correction."""

    error_code = "CONFIGURATION_ERROR"
    status_code = 500
    error_kind = ErrorKind.CONFIGURATION

    def __init__(
        self,
        message: str = "Configuration error",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


class BOMCycleError(ConfigurationError):
    """Raised when a BOM references its own product, directly or transitively."""

    error_code = "BOM_CYCLE"

    def __init__(
        self,
        path: list,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["path"] = [str(p) for p in path]
        message = "BOM cycle detected: " + " -> ".join(str(p) for p in path)
        super().__init__(message, details=details)


class CounterMismatchError(ConfigurationError):
    """Raised when the allocated counter disagrees with the reservation scan."""

    error_code = "COUNTER_MISMATCH"

    def __init__(
        self,
        material_id: Any,
        *,
        counter: Decimal,
        scanned: Decimal,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["material_id"] = str(material_id)
        details["counter"] = _num(counter)
        details["scanned"] = _num(scanned)
        message = (
            f"Allocated counter for material {material_id} is {_num(counter)} "
            f"but active reservations total {_num(scanned)}"
        )
        super().__init__(message, details=details)


class DatabaseError(MaterialsEngineException):
    """Raised when a database operation fails."""

    error_code = "DATABASE_ERROR"
    status_code = 500
    error_kind = ErrorKind.TRANSIENT
    retryable = True

    def __init__(
        self,
        message: str = "Database operation failed",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


# ===================
# 503 Service Unavailable Errors
# ===================


class LockTimeoutError(MaterialsEngineException):
    """Raised when an inventory row lock could not be acquired in time. Safe to retry."""

    error_code = "BUSY"
    status_code = 503
    error_kind = ErrorKind.BUSY
    retryable = True

    def __init__(
        self,
        material_ids: Optional[list] = None,
        *,
        timeout_ms: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if material_ids:
            details["material_ids"] = [str(m) for m in material_ids]
        if timeout_ms:
            details["timeout_ms"] = timeout_ms
            details["retry_after_seconds"] = max(1, timeout_ms // 1000)
        message = "Inventory is busy; could not acquire stock lock"
        if material_ids:
            message = f"{message} for materials {', '.join(str(m) for m in material_ids)}"
        super().__init__(message, details=details)
