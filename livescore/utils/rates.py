"""
Derived rate helpers.

Pure functions over the scoring data model: run rates for the
scoreboard and player efficiency figures for the statistics tables.
"""

from __future__ import annotations

from typing import Optional

from livescore.utils.overs import Overs, OversLike


def balls_remaining(overs: OversLike, total_overs: int) -> int:
    """Legal deliveries left in an innings of ``total_overs``."""
    used = Overs.coerce(overs).to_ball_count()
    return max(0, Overs.from_overs(total_overs).to_ball_count() - used)


def target(first_innings_runs: int) -> int:
    """Runs the chasing side needs to win."""
    return first_innings_runs + 1


def current_run_rate(runs: int, overs: OversLike) -> float:
    """Runs per over so far."""
    decimal_overs = Overs.coerce(overs).as_decimal_overs()
    if decimal_overs == 0.0:
        return 0.0
    return runs / decimal_overs


def required_run_rate(
    target_runs: int,
    runs: int,
    overs: OversLike,
    total_overs: int,
) -> Optional[float]:
    """Runs per over needed from the remaining deliveries.

    Returns None once the target is reached or no balls remain.
    """
    runs_needed = target_runs - runs
    remaining = balls_remaining(overs, total_overs)
    if runs_needed <= 0 or remaining <= 0:
        return None
    return runs_needed / (remaining / 6.0)


def strike_rate(runs: int, balls_faced: int) -> float:
    """Batting runs per 100 balls."""
    return (runs / balls_faced * 100) if balls_faced > 0 else 0.0


def economy_rate(runs_conceded: int, overs_bowled: OversLike) -> float:
    """Runs conceded per over bowled."""
    decimal_overs = Overs.coerce(overs_bowled).as_decimal_overs()
    return runs_conceded / decimal_overs if decimal_overs > 0 else 0.0
