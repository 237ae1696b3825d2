"""
Match Scoring Engine.

Pure state transitions over the match aggregate. Every operation takes
a match, validates the event against the current state and returns a
``Transition`` holding a new match plus the signals the caller must act
on (innings complete, match decided). The input match is never mutated,
so a rejected event leaves the caller's state untouched.

State machine:

    upcoming --start--> live(1) --switch--> live(2) --end--> completed

``completed`` is terminal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from livescore.config import MAX_WICKETS
from livescore.data.models import (
    BattingCard,
    BowlingCard,
    FallOfWicket,
    Innings,
    Match,
    MatchStatus,
    TossChoice,
)
from livescore.state.errors import (
    InvalidEventError,
    InvalidTransitionError,
    InvariantViolationError,
)
from livescore.utils.overs import Overs, OversLike

logger = logging.getLogger(__name__)


class ScoringSignal(Enum):
    INNINGS_COMPLETE = "innings_complete"
    MATCH_COMPLETE = "match_complete"


class MarginType(Enum):
    WICKETS = "wickets"
    RUNS = "runs"
    TIE = "tie"


@dataclass(frozen=True)
class MatchDecision:
    """Outcome of the win-condition check for a second innings."""

    decided: bool = False
    winner_id: Optional[str] = None
    margin: Optional[int] = None
    margin_type: Optional[MarginType] = None
    description: str = ""

    @property
    def is_tie(self) -> bool:
        return self.margin_type == MarginType.TIE


UNDECIDED = MatchDecision()


@dataclass
class Transition:
    """Result of applying one event to a match."""

    match: Match
    applied: bool = True
    innings_complete: bool = False
    decision: MatchDecision = UNDECIDED
    signals: list[ScoringSignal] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.innings_complete and ScoringSignal.INNINGS_COMPLETE not in self.signals:
            self.signals.append(ScoringSignal.INNINGS_COMPLETE)
        if self.decision.decided and ScoringSignal.MATCH_COMPLETE not in self.signals:
            self.signals.append(ScoringSignal.MATCH_COMPLETE)


# ── Win / innings conditions ─────────────────────────────────────────


def innings_finished(innings: Innings, total_overs: int) -> bool:
    """All out or the format's overs used up."""
    return innings.wickets >= MAX_WICKETS or innings.overs >= Overs.from_overs(total_overs)


def evaluate_innings_complete(match: Match) -> bool:
    inn = match.active_innings
    if inn is None:
        return False
    return innings_finished(inn, match.total_overs)


def evaluate_match_end(
    innings1: Optional[Innings],
    innings2: Optional[Innings],
    total_overs: int,
) -> MatchDecision:
    """Decide the result from the two innings, if it is decided yet.

    The single source of truth for win determination: the manual end
    path and the automatic completion both go through here.
    """
    if innings1 is None or innings2 is None:
        return UNDECIDED

    if innings2.runs > innings1.runs:
        wickets_left = MAX_WICKETS - innings2.wickets
        return MatchDecision(
            decided=True,
            winner_id=innings2.team_id,
            margin=wickets_left,
            margin_type=MarginType.WICKETS,
            description=f"{innings2.team_id} won by {wickets_left} wickets",
        )

    if innings_finished(innings2, total_overs):
        if innings2.runs < innings1.runs:
            run_margin = innings1.runs - innings2.runs
            return MatchDecision(
                decided=True,
                winner_id=innings1.team_id,
                margin=run_margin,
                margin_type=MarginType.RUNS,
                description=f"{innings1.team_id} won by {run_margin} runs",
            )
        return MatchDecision(
            decided=True,
            winner_id=None,
            margin=None,
            margin_type=MarginType.TIE,
            description="Match Tied",
        )

    return UNDECIDED


# ── Transitions ──────────────────────────────────────────────────────


def _require_live(match: Match, action: str) -> None:
    if match.status != MatchStatus.LIVE:
        raise InvalidTransitionError(
            f"Cannot {action}: match {match.id} is {match.status.value}", match.id
        )


def _first_batting_team(match: Match) -> str:
    if match.toss_winner_id is None:
        return match.team1_id
    if match.toss_choice == TossChoice.BOWL:
        return match.other_team(match.toss_winner_id)
    return match.toss_winner_id


def start_match(match: Match, batting_team_id: Optional[str] = None) -> Transition:
    """upcoming -> live, opening the first innings."""
    if match.status != MatchStatus.UPCOMING:
        raise InvalidTransitionError(
            f"Cannot start match {match.id}: it is {match.status.value}", match.id
        )
    if batting_team_id is not None and batting_team_id not in (match.team1_id, match.team2_id):
        raise InvalidEventError(
            f"Team {batting_team_id} is not playing in match {match.id}", match.id
        )

    new = match.clone()
    new.status = MatchStatus.LIVE
    new.current_innings = 1
    new.innings1 = Innings(team_id=batting_team_id or _first_batting_team(match))
    new.innings2 = None
    logger.info("Match %s started, %s batting first", new.id, new.innings1.team_id)
    return Transition(match=new)


def record_delivery(
    match: Match,
    runs: int,
    is_wicket: bool = False,
    is_extra: bool = False,
    *,
    striker_id: Optional[str] = None,
    bowler_id: Optional[str] = None,
) -> Transition:
    """Apply one delivery to the active innings.

    Extras (wide / no-ball) add their runs to the total and to the
    innings extras but do not advance the ball counter, and are charged
    to the bowler's runs without counting as a ball bowled.
    """
    if isinstance(runs, bool) or not isinstance(runs, int) or runs < 0:
        raise InvalidEventError(f"Runs must be a non-negative integer, got {runs!r}", match.id)
    _require_live(match, "record delivery")

    inn = match.active_innings
    if inn is None:
        raise InvalidTransitionError(f"Match {match.id} has no active innings", match.id)
    if inn.wickets >= MAX_WICKETS:
        raise InvariantViolationError(
            f"Innings {match.current_innings} of match {match.id} is already all out", match.id
        )
    if inn.overs >= match.format_limit:
        raise InvariantViolationError(
            f"Innings {match.current_innings} of match {match.id} has used all "
            f"{match.total_overs} overs",
            match.id,
        )
    if match.current_innings == 2 and evaluate_match_end(
        match.innings1, match.innings2, match.total_overs
    ).decided:
        raise InvalidTransitionError(f"Result of match {match.id} is already decided", match.id)

    new = match.clone()
    inn = new.active_innings
    inn.runs += runs
    if is_extra:
        inn.extras += runs
    else:
        inn.overs = inn.overs.add_ball()
    if is_wicket:
        inn.wickets += 1
        inn.fall_of_wickets.append(
            FallOfWicket(
                runs=inn.runs,
                wicket_number=inn.wickets,
                overs=inn.overs,
                player_id=striker_id,
            )
        )

    if striker_id is not None:
        _credit_batter(inn, striker_id, runs, is_wicket, is_extra)
    if bowler_id is not None:
        _charge_bowler(inn, bowler_id, runs, is_wicket, is_extra)

    logger.debug(
        "Match %s innings %s: %s (%s%s)",
        new.id, new.current_innings, inn.score_line, runs,
        " W" if is_wicket else " extra" if is_extra else "",
    )

    complete = innings_finished(inn, new.total_overs)
    decision = UNDECIDED
    if new.current_innings == 2:
        decision = evaluate_match_end(new.innings1, new.innings2, new.total_overs)
    if complete:
        logger.info("Match %s innings %s complete at %s", new.id, new.current_innings, inn.score_line)
    return Transition(match=new, innings_complete=complete, decision=decision)


def _credit_batter(inn: Innings, player_id: str, runs: int, is_wicket: bool, is_extra: bool) -> None:
    card = inn.batting.setdefault(player_id, BattingCard())
    if not is_extra:
        card.balls_faced += 1
        card.runs += runs
        if runs == 4:
            card.fours += 1
        elif runs == 6:
            card.sixes += 1
    if is_wicket:
        card.is_out = True


def _charge_bowler(inn: Innings, player_id: str, runs: int, is_wicket: bool, is_extra: bool) -> None:
    card = inn.bowling.setdefault(player_id, BowlingCard())
    card.runs += runs
    if is_extra:
        card.wides += 1
    else:
        card.balls += 1
    if is_wicket:
        card.wickets += 1


def set_overs(match: Match, overs: OversLike) -> Transition:
    """Manual correction of the active innings' overs.

    Bypasses ball-by-ball increments; the value must still be a valid
    ``over.ball`` within the format limit.
    """
    _require_live(match, "set overs")
    if match.active_innings is None:
        raise InvalidTransitionError(f"Match {match.id} has no active innings", match.id)
    try:
        value = Overs.coerce(overs)
    except (TypeError, ValueError) as e:
        raise InvalidEventError(str(e), match.id) from e
    if value > match.format_limit:
        raise InvariantViolationError(
            f"Overs {value} exceed the {match.total_overs}-over limit of match {match.id}",
            match.id,
        )

    new = match.clone()
    inn = new.active_innings
    logger.info("Match %s innings %s overs corrected %s -> %s",
                new.id, new.current_innings, inn.overs, value)
    inn.overs = value

    decision = UNDECIDED
    if new.current_innings == 2:
        decision = evaluate_match_end(new.innings1, new.innings2, new.total_overs)
    return Transition(
        match=new,
        innings_complete=innings_finished(inn, new.total_overs),
        decision=decision,
    )


def switch_innings(match: Match) -> Transition:
    """live(1) -> live(2). A repeat call once innings 2 exists is a no-op.

    Does not check that innings 1 is finished; callers consult
    ``evaluate_innings_complete`` first.
    """
    if match.innings2 is not None:
        logger.warning("Match %s already in second innings, ignoring switch", match.id)
        return Transition(match=match, applied=False)
    _require_live(match, "switch innings")
    if match.current_innings != 1 or match.innings1 is None:
        raise InvalidTransitionError(f"Match {match.id} is not in its first innings", match.id)

    new = match.clone()
    new.current_innings = 2
    new.innings2 = Innings(team_id=new.other_team(new.innings1.team_id))
    logger.info(
        "Match %s: %s set a target of %d, %s to bat",
        new.id, new.innings1.team_id, new.innings1.runs + 1, new.innings2.team_id,
    )
    return Transition(match=new)


def end_match(
    match: Match,
    winner_id: Optional[str],
    mvp_id: Optional[str],
    result: Optional[str] = None,
) -> Transition:
    """live -> completed. A repeat call on a completed match is a no-op.

    Once the chase is decided the stored result comes from
    ``evaluate_match_end``: an omitted winner and result are filled in
    from it and a contradicting winner is rejected. Before that the
    caller's result stands (abandoned or conceded matches).
    """
    if match.status == MatchStatus.COMPLETED:
        logger.warning("Match %s already completed, ignoring end", match.id)
        return Transition(match=match, applied=False)
    _require_live(match, "end match")
    if winner_id is not None and winner_id not in (match.team1_id, match.team2_id):
        raise InvalidEventError(f"Winner {winner_id} is not playing in match {match.id}", match.id)

    decision = UNDECIDED
    if match.current_innings == 2:
        decision = evaluate_match_end(match.innings1, match.innings2, match.total_overs)
    if decision.decided:
        if winner_id is not None and winner_id != decision.winner_id:
            raise InvalidEventError(
                f"Winner {winner_id} contradicts the result of match {match.id}: "
                f"{decision.description}",
                match.id,
            )
        winner_id = decision.winner_id
        result = result or decision.description

    new = match.clone()
    new.status = MatchStatus.COMPLETED
    new.winner_id = winner_id
    new.mvp_id = mvp_id
    new.result = result
    logger.info("Match %s completed: %s (MVP %s)", new.id, result or winner_id, mvp_id)
    return Transition(match=new, decision=decision)
