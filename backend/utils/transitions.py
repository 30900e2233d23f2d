"""
Complaint lifecycle rules.

Every handler that changes a complaint's status asks ``validate_transition``
first. The lifecycle only moves forward::

    pending -> assigned -> in-progress -> completed
                      \\             \\
                       -> rejected    -> rejected

``completed`` and ``rejected`` are terminal. Who may request a change is
decided by the route dependencies before this module is consulted.
"""
import enum
from typing import Optional, Union
from pydantic import BaseModel

from models.complaints import ComplaintStatus


class TransitionRejection(str, enum.Enum):
    terminal_state = "terminal-state"
    invalid_forward_jump = "invalid-forward-jump"
    same_state = "same-state"
    unknown_state = "unknown-state"


class TransitionResult(BaseModel):
    allowed: bool
    reason: Optional[TransitionRejection] = None


ALLOWED_TRANSITIONS = {
    ComplaintStatus.pending: {ComplaintStatus.assigned},
    ComplaintStatus.assigned: {ComplaintStatus.in_progress, ComplaintStatus.rejected},
    ComplaintStatus.in_progress: {ComplaintStatus.completed, ComplaintStatus.rejected},
    ComplaintStatus.completed: set(),
    ComplaintStatus.rejected: set(),
}

TERMINAL_STATUSES = frozenset({ComplaintStatus.completed, ComplaintStatus.rejected})
PHOTO_STATUSES = frozenset({ComplaintStatus.assigned, ComplaintStatus.in_progress})


def parse_status(value: Union[str, ComplaintStatus, None]) -> Optional[ComplaintStatus]:
    """Return the matching status, or None for anything unrecognised."""
    try:
        return ComplaintStatus(value)
    except (ValueError, TypeError):
        return None


def is_terminal(status: Union[str, ComplaintStatus]) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def accepts_progress_photos(status: Union[str, ComplaintStatus]) -> bool:
    # Workers document ongoing work only
    return parse_status(status) in PHOTO_STATUSES


def validate_transition(
    current_status: Union[str, ComplaintStatus],
    target_status: Union[str, ComplaintStatus],
) -> TransitionResult:
    """
    Decide whether a complaint may move from ``current_status`` to ``target_status``.

    Never raises: unrecognised values come back as an ``unknown-state`` rejection.

    Args:
        current_status: Status the complaint is in now
        target_status: Status being requested

    Returns:
        TransitionResult with ``allowed`` and, when refused, the reason code
    """
    current = parse_status(current_status)
    target = parse_status(target_status)

    if current is None or target is None:
        return TransitionResult(allowed=False, reason=TransitionRejection.unknown_state)

    if current in TERMINAL_STATUSES:
        return TransitionResult(allowed=False, reason=TransitionRejection.terminal_state)

    if current == target:
        return TransitionResult(allowed=False, reason=TransitionRejection.same_state)

    if target not in ALLOWED_TRANSITIONS[current]:
        return TransitionResult(allowed=False, reason=TransitionRejection.invalid_forward_jump)

    return TransitionResult(allowed=True)
