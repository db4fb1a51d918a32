"""Status Configuration and Transition Rules

Valid status values and allowed transitions for material reservations.
Transitions are validated before every write so a terminal reservation can never be revived.
"""
from enum import Enum
from typing import Dict, List, Set

from materials_engine.exceptions import InvalidStateError


# =============================================================================
# Material Reservation Status
# =============================================================================

class ReservationStatus(str, Enum):
    """Valid status values for Material Reservations"""
    RESERVED = "RESERVED"
    PARTIALLY_CONSUMED = "PARTIALLY_CONSUMED"
    CONSUMED = "CONSUMED"
    RELEASED = "RELEASED"


# Allowed transitions: current_status -> set of allowed next statuses
# RESERVED may jump straight to CONSUMED when fully consumed in one step.
RESERVATION_TRANSITIONS: Dict[str, Set[str]] = {
    ReservationStatus.RESERVED: {
        ReservationStatus.PARTIALLY_CONSUMED,
        ReservationStatus.CONSUMED,
        ReservationStatus.RELEASED,
    },
    ReservationStatus.PARTIALLY_CONSUMED: {
        ReservationStatus.PARTIALLY_CONSUMED,
        ReservationStatus.CONSUMED,
        ReservationStatus.RELEASED,
    },
    ReservationStatus.CONSUMED: set(),  # Terminal
    ReservationStatus.RELEASED: set(),  # Terminal
}

# Statuses whose remaining quantity still counts against net-available
ACTIVE_RESERVATION_STATUSES: List[str] = [
    ReservationStatus.RESERVED.value,
    ReservationStatus.PARTIALLY_CONSUMED.value,
]


def get_allowed_reservation_transitions(current_status: str) -> List[str]:
    """Get list of allowed next statuses for a reservation"""
    return [s.value for s in RESERVATION_TRANSITIONS.get(current_status, set())]


def is_valid_reservation_transition(current_status: str, new_status: str) -> bool:
    """Check if a reservation status transition is valid"""
    allowed = RESERVATION_TRANSITIONS.get(current_status, set())
    return new_status in allowed


def validate_reservation_transition(current_status: str, new_status: str) -> None:
    """Raise InvalidStateError unless current_status -> new_status is allowed."""
    if not is_valid_reservation_transition(current_status, new_status):
        raise InvalidStateError(
            f"Reservation cannot move from {current_status} to {new_status}",
            current_state=current_status,
            allowed_states=get_allowed_reservation_transitions(current_status),
        )


# =============================================================================
# Reservation Priority
# =============================================================================

class ReservationPriority(str, Enum):
    """Priority recorded on a reservation. Informational; it does not reorder stock."""
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"

