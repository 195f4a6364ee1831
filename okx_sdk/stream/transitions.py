"""
Legal streaming session state transitions.

The session consults this table before every state change, so an illegal
transition surfaces immediately as a StateTransitionError instead of
silently corrupting the lifecycle.
"""

from ..errors import StateTransitionError
from .models import SessionState

S = SessionState

ALLOWED_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    S.DISCONNECTED: frozenset({S.CONNECTING, S.CLOSED}),
    S.CONNECTING: frozenset({S.CONNECTED, S.DISCONNECTED, S.RECONNECTING, S.CLOSED}),
    S.CONNECTED: frozenset({S.AUTHENTICATING, S.READY, S.RECONNECTING, S.CLOSED}),
    S.AUTHENTICATING: frozenset({S.READY, S.RECONNECTING, S.CLOSED}),
    S.READY: frozenset({S.RECONNECTING, S.CLOSED}),
    S.RECONNECTING: frozenset({S.CONNECTING, S.CLOSED}),
    S.CLOSED: frozenset(),
}


def can_transition(current: SessionState, target: SessionState) -> bool:
    """Whether moving from ``current`` to ``target`` is legal."""
    return target in ALLOWED_TRANSITIONS[current]


def validate_transition(current: SessionState, target: SessionState) -> None:
    """Raise StateTransitionError if the transition is not in the table."""
    if not can_transition(current, target):
        raise StateTransitionError(
            f"Illegal session transition {current.value} -> {target.value}",
            current_state=current.value,
            attempted_transition=target.value,
        )


def is_terminal(state: SessionState) -> bool:
    return not ALLOWED_TRANSITIONS[state]
