"""Complaint status lifecycle: Open -> Under Review -> Resolved, forward only."""
from __future__ import annotations

from models import COMPLAINT_STATUSES
from utils.errors import ValidationError

INITIAL_STATUS = COMPLAINT_STATUSES[0]
TERMINAL_STATUS = COMPLAINT_STATUSES[-1]

_STATUS_ALIASES: dict[str, str] = {
    "open": "Open",
    "under review": "Under Review",
    "under_review": "Under Review",
    "under-review": "Under Review",
    "review": "Under Review",
    "resolved": "Resolved",
}

_STEP_LABELS: dict[str, str] = {
    "Open": "Open",
    "Under Review": "Review",
    "Resolved": "Resolved",
}


def normalize_status(value) -> str:
    """Map user input onto a canonical status or raise ValidationError."""
    key = str(value or "").strip().lower()
    if not key:
        raise ValidationError("Status is required.")
    status = _STATUS_ALIASES.get(key)
    if not status:
        raise ValidationError(f"Unknown status '{value}'. Expected one of: {', '.join(COMPLAINT_STATUSES)}.")
    return status


def status_rank(status: str) -> int:
    return COMPLAINT_STATUSES.index(status)


def is_terminal(status: str) -> bool:
    return status == TERMINAL_STATUS


def check_transition(current: str, target: str, allow_skip: bool = False) -> None:
    """Validate a status change.

    Moving backward or to the current status is always rejected. Skipping a
    forward step (Open -> Resolved) is only accepted when ``allow_skip`` is set,
    which the store does for admins.
    """
    current_rank = status_rank(current)
    target_rank = status_rank(target)
    if target_rank == current_rank:
        raise ValidationError(f"Complaint is already '{current}'.")
    if target_rank < current_rank:
        raise ValidationError(f"Cannot move a complaint from '{current}' back to '{target}'.")
    if target_rank - current_rank > 1 and not allow_skip:
        raise ValidationError(
            f"Cannot move a complaint from '{current}' directly to '{target}'; "
            f"it must pass through '{COMPLAINT_STATUSES[current_rank + 1]}'."
        )


def next_statuses(current: str, allow_skip: bool = False) -> list[str]:
    rank = status_rank(current)
    following = list(COMPLAINT_STATUSES[rank + 1:])
    return following if allow_skip else following[:1]


def progress_steps(status: str) -> list[dict]:
    rank = status_rank(status) if status in COMPLAINT_STATUSES else -1
    return [
        {"status": step, "label": _STEP_LABELS[step], "reached": index <= rank}
        for index, step in enumerate(COMPLAINT_STATUSES)
    ]
