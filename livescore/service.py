"""
Match Service.

Runs scoring events against stored matches. Every mutating operation
for a match id is serialised behind one lock and saved with a guard on
the state it was computed from, so duplicate triggers from several
observers (admin panel, live view, chart) resolve to one transition
and cross-process races surface as ``ConcurrentUpdateError``.

After each delivery the service fires the automatic transitions: a
finished first innings switches innings, a decided second innings
ends the match with the computed result and a suggested MVP.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from typing import Any, Callable, Optional

from livescore.config import EngineConfig, get_config
from livescore.data.models import Match, MatchStatus, Player, Team, TossChoice
from livescore.state import scoring
from livescore.state.errors import InvalidEventError, InvalidTransitionError, ScoringError
from livescore.state.scoring import Transition
from livescore.stats.aggregate import suggest_mvp
from livescore.storage.store import ConcurrentUpdateError, MatchStore, SaveGuard
from livescore.utils import rates
from livescore.utils.overs import OversLike

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = frozenset({
    "team1_id", "team2_id", "total_overs", "venue", "date", "toss_winner_id", "toss_choice",
})


class MatchService:
    """Serialised, persisted front door to the scoring engine."""

    def __init__(
        self,
        store: MatchStore,
        config: Optional[EngineConfig] = None,
        auto_transitions: Optional[bool] = None,
    ):
        self._store = store
        self._config = config or get_config()
        self._auto = (
            self._config.scoring.auto_transitions if auto_transitions is None else auto_transitions
        )
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def store(self) -> MatchStore:
        return self._store

    def _lock_for(self, match_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(match_id, threading.Lock())

    # ── Roster / creation ────────────────────────────────────────────

    def add_team(self, name: str, team_id: Optional[str] = None) -> Team:
        return self._store.save_team(Team(id=team_id or f"team-{uuid.uuid4().hex[:8]}", name=name))

    def add_player(self, name: str, team_id: str, role: str = "batsman",
                   player_id: Optional[str] = None) -> Player:
        return self._store.save_player(
            Player(id=player_id or f"player-{uuid.uuid4().hex[:8]}", name=name,
                   team_id=team_id, role=role)
        )

    def delete_team(self, team_id: str) -> None:
        self._store.delete_team(team_id)

    def delete_player(self, player_id: str) -> None:
        self._store.delete_player(player_id)

    def create_match(
        self,
        team1_id: str,
        team2_id: str,
        total_overs: Optional[int] = None,
        venue: str = "",
        date: str = "",
        toss_winner_id: Optional[str] = None,
        toss_choice: Optional[TossChoice] = None,
        match_id: Optional[str] = None,
    ) -> Match:
        overs = total_overs if total_overs is not None else self._config.default_overs
        self._validate_fixture(team1_id, team2_id, overs, toss_winner_id, match_id)

        match = Match(
            id=match_id or f"match-{uuid.uuid4().hex[:12]}",
            team1_id=team1_id,
            team2_id=team2_id,
            total_overs=overs,
            venue=venue,
            date=date,
            toss_winner_id=toss_winner_id,
            toss_choice=toss_choice,
        )
        return self._store.create_match(match)

    @staticmethod
    def _validate_fixture(team1_id: str, team2_id: str, overs: int,
                          toss_winner_id: Optional[str], match_id: Optional[str]) -> None:
        if team1_id == team2_id:
            raise InvalidEventError("A match needs two different teams", match_id)
        if overs <= 0:
            raise InvalidEventError(f"Total overs must be positive, got {overs}", match_id)
        if toss_winner_id is not None and toss_winner_id not in (team1_id, team2_id):
            raise InvalidEventError(f"Toss winner {toss_winner_id} is not playing", match_id)

    def get_match(self, match_id: str) -> Match:
        return self._store.load_match(match_id)

    def update_match(self, match_id: str, **changes: Any) -> Match:
        """Edit fixture details (teams, overs, venue, date, toss) before the start."""
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise InvalidEventError(f"Cannot edit {', '.join(sorted(unknown))}", match_id)
        with self._lock_for(match_id):
            match = self._store.load_match(match_id)
            if match.status != MatchStatus.UPCOMING:
                raise InvalidTransitionError(
                    f"Cannot edit match {match_id}: it is {match.status.value}", match_id
                )
            edited = dataclasses.replace(match.clone(), **changes)
            self._validate_fixture(edited.team1_id, edited.team2_id, edited.total_overs,
                                   edited.toss_winner_id, match_id)
            logger.info("Match %s edited: %s", match_id, ", ".join(sorted(changes)))
            return self._store.update_match(edited)

    def delete_match(self, match_id: str) -> None:
        with self._lock_for(match_id):
            self._store.delete_match(match_id)
        with self._locks_guard:
            self._locks.pop(match_id, None)

    # ── Scoring events ───────────────────────────────────────────────

    def start_match(self, match_id: str, batting_team_id: Optional[str] = None) -> Transition:
        return self._apply(match_id, scoring.start_match, batting_team_id)

    def record_delivery(
        self,
        match_id: str,
        runs: int,
        is_wicket: bool = False,
        is_extra: bool = False,
        *,
        striker_id: Optional[str] = None,
        bowler_id: Optional[str] = None,
    ) -> Transition:
        return self._apply(
            match_id, scoring.record_delivery, runs, is_wicket, is_extra,
            striker_id=striker_id, bowler_id=bowler_id,
        )

    def set_overs(self, match_id: str, overs: OversLike) -> Transition:
        return self._apply(match_id, scoring.set_overs, overs)

    def switch_innings(self, match_id: str) -> Transition:
        return self._apply(match_id, scoring.switch_innings)

    def end_match(self, match_id: str, winner_id: Optional[str], mvp_id: Optional[str],
                  result: Optional[str] = None) -> Transition:
        return self._apply(match_id, scoring.end_match, winner_id, mvp_id, result)

    def _apply(self, match_id: str, operation: Callable[..., Transition], *args: Any,
               **kwargs: Any) -> Transition:
        with self._lock_for(match_id):
            match = self._store.load_match(match_id)
            try:
                transition = operation(match, *args, **kwargs)
            except ScoringError as e:
                logger.warning("Rejected %s on match %s: %s", operation.__name__, match_id, e)
                raise
            transition = self._persist(match, transition)
            if self._auto and transition.applied:
                transition = self._fire_auto_transitions(transition)
            return transition

    def _persist(self, loaded: Match, transition: Transition) -> Transition:
        if not transition.applied:
            return transition
        try:
            saved = self._store.save_match(transition.match, expected=SaveGuard.of(loaded))
        except ConcurrentUpdateError as e:
            logger.warning("Discarding transition on match %s: %s", loaded.id, e)
            raise
        return dataclasses.replace(transition, match=saved)

    def _fire_auto_transitions(self, transition: Transition) -> Transition:
        match = transition.match
        if not match.is_live:
            return transition

        if match.current_innings == 1 and transition.innings_complete:
            logger.info("Match %s: first innings complete, switching innings", match.id)
            switched = self._persist(match, scoring.switch_innings(match))
            return dataclasses.replace(transition, match=switched.match)

        if match.current_innings == 2 and transition.decision.decided:
            decision = transition.decision
            mvp_id = suggest_mvp(match, decision.winner_id)
            logger.info("Match %s decided: %s", match.id, decision.description)
            ended = self._persist(
                match, scoring.end_match(match, decision.winner_id, mvp_id, decision.description)
            )
            return dataclasses.replace(transition, match=ended.match)

        return transition

    # ── Read views ───────────────────────────────────────────────────

    def scoreboard(self, match_id: str) -> dict[str, Any]:
        """Derived live figures for display."""
        match = self._store.load_match(match_id)
        board: dict[str, Any] = {
            "match_id": match.id,
            "status": match.status.value,
            "current_innings": match.current_innings,
            "total_overs": match.total_overs,
            "result": match.result,
            "winner_id": match.winner_id,
            "mvp_id": match.mvp_id,
        }
        inn = match.active_innings
        if inn is None or match.status == MatchStatus.UPCOMING:
            return board

        board.update({
            "batting_team_id": inn.team_id,
            "bowling_team_id": match.other_team(inn.team_id),
            "score": inn.score_line,
            "runs": inn.runs,
            "wickets": inn.wickets,
            "overs": str(inn.overs),
            "extras": inn.extras,
            "current_run_rate": round(rates.current_run_rate(inn.runs, inn.overs), 2),
            "balls_remaining": rates.balls_remaining(inn.overs, match.total_overs),
        })
        if match.current_innings == 2 and match.innings1 is not None:
            target = rates.target(match.innings1.runs)
            rrr = rates.required_run_rate(target, inn.runs, inn.overs, match.total_overs)
            board.update({
                "target": target,
                "runs_needed": max(0, target - inn.runs),
                "required_run_rate": round(rrr, 2) if rrr is not None else None,
            })
        return board
