"""
Scoring failures surfaced to callers.

Rejected events never mutate the match. Idempotent repeats (a second
innings switch, ending a completed match) are not errors and are
reported through the transition result instead.
"""

from __future__ import annotations

from typing import Optional


class ScoringError(Exception):
    """Base class for rejected scoring events."""

    def __init__(self, message: str, match_id: Optional[str] = None):
        super().__init__(message)
        self.match_id = match_id


class InvalidTransitionError(ScoringError):
    """The event does not apply to the match's current state."""


class InvariantViolationError(ScoringError):
    """The event would push wickets or overs past their limit."""


class InvalidEventError(ScoringError, ValueError):
    """Malformed event input such as negative runs or an unknown team."""
