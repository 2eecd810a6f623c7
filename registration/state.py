"""Reservation states and allowed transitions.

Lifecycle of the single hold a session may own:

    NO_SELECTION -> BOOKING -> HELD -> SUBMITTING -> SUBMITTED
                       |         |          |
                       |         |          +-> HELD (submit failed)
                       |         +-> RELEASED -> NO_SELECTION
                       |         +-> EXPIRED  -> NO_SELECTION
                       +-> NO_SELECTION (hold refused)

Waitlist entry is the slot-less equivalent of HELD (no countdown).
"""
from enum import Enum
from typing import Dict, List


class ReservationState(str, Enum):
    """Discrete reservation states."""
    NO_SELECTION = "no_selection"
    BOOKING = "booking"
    HELD = "held"
    WAITLISTED = "waitlisted"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    RELEASED = "released"
    EXPIRED = "expired"


# Current state -> allowed next states
VALID_TRANSITIONS: Dict[ReservationState, List[ReservationState]] = {
    ReservationState.NO_SELECTION: [
        ReservationState.BOOKING,
        ReservationState.WAITLISTED,
    ],
    ReservationState.BOOKING: [
        ReservationState.HELD,
        ReservationState.NO_SELECTION,  # Hold refused
    ],
    ReservationState.HELD: [
        ReservationState.SUBMITTING,
        ReservationState.RELEASED,
        ReservationState.EXPIRED,
    ],
    ReservationState.WAITLISTED: [
        ReservationState.SUBMITTING,
        ReservationState.RELEASED,
    ],
    ReservationState.SUBMITTING: [
        ReservationState.SUBMITTED,
        ReservationState.HELD,  # Submit failed, hold kept
        ReservationState.WAITLISTED,  # Submit failed, waitlist entry kept
    ],
    ReservationState.RELEASED: [
        ReservationState.NO_SELECTION,
    ],
    ReservationState.EXPIRED: [
        ReservationState.NO_SELECTION,
    ],
    ReservationState.SUBMITTED: [],
}


def validate_transition(
    current: ReservationState,
    intended: ReservationState
) -> bool:
    """
    Check a reservation state transition.

    Example:
        >>> validate_transition(
        ...     ReservationState.NO_SELECTION,
        ...     ReservationState.BOOKING
        ... )
        True
    """
    return intended in VALID_TRANSITIONS.get(current, [])
