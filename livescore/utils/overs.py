"""
Overs value type.

Cricket overs notation is not a decimal: ``5.3`` means 5 completed overs
and 3 balls of the sixth, i.e. 33 legal deliveries. Arithmetic is done on
ball counts and only converted to the ``over.ball`` notation at the edges
(storage, display).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import total_ordering
from typing import Union

from livescore.config import BALLS_PER_OVER

OversLike = Union["Overs", str, int, float]


@total_ordering
@dataclass(frozen=True)
class Overs:
    """Completed overs plus balls (0-5) in the current over."""

    completed: int = 0
    balls: int = 0

    def __post_init__(self) -> None:
        if self.completed < 0:
            raise ValueError(f"Invalid overs: {self.completed}.{self.balls}")
        if not 0 <= self.balls < BALLS_PER_OVER:
            raise ValueError(
                f"Invalid overs format: {self.completed}.{self.balls} (balls part must be 0-5)"
            )

    # ── Constructors ─────────────────────────────────────────────────

    @classmethod
    def from_ball_count(cls, balls: int) -> "Overs":
        if balls < 0:
            raise ValueError("Balls cannot be negative")
        return cls(balls // BALLS_PER_OVER, balls % BALLS_PER_OVER)

    @classmethod
    def from_overs(cls, overs: int) -> "Overs":
        """Whole overs, e.g. a format limit of 20."""
        return cls(int(overs), 0)

    @classmethod
    def from_float(cls, value: float) -> "Overs":
        """Decode the stored ``over.ball`` float (19.4 -> 19 overs, 4 balls).

        The ball digit is rounded to absorb float noise such as 1.2999999.
        """
        if value is None:
            raise ValueError("Overs cannot be None")
        if value < 0:
            raise ValueError(f"Invalid overs: {value}")
        completed = math.floor(value)
        balls = round((value - completed) * 10)
        if balls == 10:
            # 2.99999 style noise rounds up to the next whole over
            completed, balls = completed + 1, 0
        return cls(int(completed), int(balls))

    @classmethod
    def parse(cls, text: str) -> "Overs":
        """Parse ``"19.4"``, ``"20"`` or ``"20.0"``."""
        s = str(text).strip()
        if not s:
            raise ValueError("Overs cannot be empty")
        if "-" in s:
            raise ValueError(f"Invalid overs: {text}")
        if "." not in s:
            return cls(int(s), 0)
        ov_part, ball_part = s.split(".", 1)
        return cls(int(ov_part) if ov_part else 0, int(ball_part) if ball_part else 0)

    @classmethod
    def coerce(cls, value: OversLike) -> "Overs":
        if isinstance(value, Overs):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, int):
            return cls.from_overs(value)
        return cls.from_float(value)

    # ── Arithmetic ───────────────────────────────────────────────────

    def to_ball_count(self) -> int:
        return self.completed * BALLS_PER_OVER + self.balls

    def add_ball(self) -> "Overs":
        if self.balls == BALLS_PER_OVER - 1:
            return Overs(self.completed + 1, 0)
        return Overs(self.completed, self.balls + 1)

    def to_float(self) -> float:
        """Stored ``over.ball`` encoding."""
        return round(self.completed + self.balls / 10, 1)

    def as_decimal_overs(self) -> float:
        """Real overs for rate arithmetic (5.3 -> 5.5)."""
        return self.to_ball_count() / BALLS_PER_OVER

    # ── Comparison / display ─────────────────────────────────────────

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Overs):
            return NotImplemented
        return self.to_ball_count() == other.to_ball_count()

    def __lt__(self, other: "Overs") -> bool:
        if not isinstance(other, Overs):
            return NotImplemented
        return self.to_ball_count() < other.to_ball_count()

    def __hash__(self) -> int:
        return hash(self.to_ball_count())

    def __str__(self) -> str:
        return f"{self.completed}.{self.balls}"
