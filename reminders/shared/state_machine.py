"""
Reminder State Machine

States a reminder passes through as observed by the dispatch job:

    UNSENT -> POLLING -> SENT
                      -> UNSENT  (send failed or timed out)

SENT is terminal. UNSENT is both the initial state and the only
retry-eligible one.
"""

from enum import Enum
from typing import Final

import structlog

from reminders.shared.exceptions import InvalidStateTransitionError

log = structlog.get_logger()


class ReminderState(str, Enum):
    """Reminder delivery state."""

    UNSENT = "UNSENT"
    """Not delivered yet; candidate for this or a later run."""

    POLLING = "POLLING"
    """Send submitted, waiting for the channel to reach a terminal status."""

    SENT = "SENT"
    """Delivery confirmed and persisted."""

    @classmethod
    def from_sent_flag(cls, sent: bool) -> "ReminderState":
        """Initial state of a reminder read from the store."""
        return cls.SENT if sent else cls.UNSENT


VALID_TRANSITIONS: Final[dict[ReminderState, frozenset[ReminderState]]] = {
    ReminderState.UNSENT: frozenset({
        ReminderState.POLLING,
    }),
    ReminderState.POLLING: frozenset({
        ReminderState.SENT,
        ReminderState.UNSENT,
    }),
    ReminderState.SENT: frozenset(),  # Terminal
}


def validate_transition(
    current_state: ReminderState | str,
    new_state: ReminderState | str,
) -> None:
    """
    Validate that a state transition is allowed.

    Args:
        current_state: Current reminder state
        new_state: Desired next state

    Raises:
        InvalidStateTransitionError: If transition is invalid
    """
    current_state = ReminderState(current_state)
    new_state = ReminderState(new_state)

    allowed = VALID_TRANSITIONS.get(current_state, frozenset())
    if new_state not in allowed:
        log.warning(
            "invalid_state_transition",
            current_state=current_state.value,
            new_state=new_state.value,
            allowed_transitions=[s.value for s in allowed],
        )
        raise InvalidStateTransitionError(
            current_state=current_state.value,
            new_state=new_state.value,
            allowed_transitions=sorted(s.value for s in allowed),
        )


def transition(current_state: ReminderState, new_state: ReminderState) -> ReminderState:
    """Validate and return the next state."""
    validate_transition(current_state, new_state)
    return new_state
