#!/usr/bin/env python3
"""
Cyber Risk Register - Status State Machine
Lifecycle transitions permitted for a risk's status.
"""

from typing import Any, Dict, FrozenSet

try:
    from .errors import InvalidTransitionError
    from .models import Status
except ImportError:
    from errors import InvalidTransitionError
    from models import Status


VALID_STATUS_TRANSITIONS: Dict[Status, FrozenSet[Status]] = {
    Status.OPEN: frozenset({Status.IN_PROGRESS, Status.ISSUE, Status.CLOSED}),
    Status.IN_PROGRESS: frozenset({Status.OPEN, Status.ISSUE, Status.CLOSED}),
    Status.ISSUE: frozenset({Status.IN_PROGRESS, Status.CLOSED}),
    Status.CLOSED: frozenset({Status.OPEN}),  # reopen only
}


def allowed_transitions(current: Any) -> FrozenSet[Status]:
    return VALID_STATUS_TRANSITIONS[Status.parse(current)]


def can_transition(current: Any, new: Any) -> bool:
    """True when current -> new is a permitted edge. Self-loops are not."""
    return Status.parse(new) in allowed_transitions(current)


def check_transition(current: Any, new: Any) -> Status:
    """Return the parsed target status or raise InvalidTransitionError."""
    target = Status.parse(new)
    source = Status.parse(current)
    if target not in VALID_STATUS_TRANSITIONS[source]:
        raise InvalidTransitionError(source, target)
    return target


def transition_action(new: Status) -> str:
    """Audit action label for a status change."""
    return f"Status changed to {new.value}"
