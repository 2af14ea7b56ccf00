"""Submission status transitions."""
from __future__ import annotations

from typing import Dict, FrozenSet

DRAFT = "draft"
SUBMITTED = "submitted"
REVIEWED = "reviewed"
APPROVED = "approved"
REJECTED = "rejected"

STATUSES = (DRAFT, SUBMITTED, REVIEWED, APPROVED, REJECTED)
TERMINAL: FrozenSet[str] = frozenset({APPROVED, REJECTED})

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    DRAFT: frozenset({SUBMITTED}),
    SUBMITTED: frozenset({REVIEWED, APPROVED, REJECTED}),
    REVIEWED: frozenset({APPROVED, REJECTED}),
    APPROVED: frozenset(),
    REJECTED: frozenset(),
}


class InvalidTransition(Exception):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move a {current} submission to {target}.")
        self.current = current
        self.target = target


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(current, target)


def is_client_editable(status: str) -> bool:
    """Clients may change answers only while the submission is a draft."""

    return status == DRAFT
