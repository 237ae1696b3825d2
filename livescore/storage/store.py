"""
Match persistence interface.

The scoring engine never touches storage. The match service loads a
match, applies a transition and hands the result to a ``MatchStore``,
which owns durability and fans out change notifications to live
subscribers (scoreboards, charts).

Includes an in-memory store for tests and offline simulation.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Optional

from livescore.data.models import Match, MatchStatus, Player, Team

logger = logging.getLogger(__name__)

MatchListener = Callable[[Match], None]


class StoreError(Exception):
    """Persistence failure, reported by the store layer."""


class RecordNotFoundError(StoreError, KeyError):
    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} {record_id} not found")
        self.record_id = record_id

    def __str__(self) -> str:
        return self.args[0]


class MatchNotFoundError(RecordNotFoundError):
    def __init__(self, match_id: str):
        super().__init__("Match", match_id)
        self.match_id = match_id


class ConcurrentUpdateError(StoreError):
    """The stored match moved on since it was loaded."""

    def __init__(self, match_id: str, expected: "SaveGuard", actual: "SaveGuard"):
        super().__init__(
            f"Match {match_id} changed concurrently: expected {expected}, found {actual}"
        )
        self.match_id = match_id
        self.expected = expected
        self.actual = actual


@dataclass(frozen=True)
class SaveGuard:
    """Expected stored state for a conditional save."""
    status: MatchStatus
    current_innings: Optional[int]
    version: int

    @classmethod
    def of(cls, match: Match) -> "SaveGuard":
        return cls(match.status, match.current_innings, match.version)

    def __str__(self) -> str:
        return f"{self.status.value}/innings={self.current_innings}/v{self.version}"


class MatchStore(ABC):
    """Abstract store for matches, teams and players, with a change feed."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[MatchListener]] = defaultdict(list)
        self._listeners_lock = threading.Lock()

    # ── Matches ──────────────────────────────────────────────────────

    @abstractmethod
    def create_match(self, match: Match) -> Match:
        ...

    @abstractmethod
    def load_match(self, match_id: str) -> Match:
        """Return the stored match or raise ``MatchNotFoundError``."""

    @abstractmethod
    def save_match(self, match: Match, expected: Optional[SaveGuard] = None) -> Match:
        """Persist ``match`` and return it with its new version.

        When ``expected`` is given the write only happens if the stored
        row still matches it, otherwise ``ConcurrentUpdateError``.
        """

    @abstractmethod
    def delete_match(self, match_id: str) -> None:
        ...

    @abstractmethod
    def list_matches(self, status: Optional[MatchStatus] = None) -> list[Match]:
        ...

    def update_match(self, match: Match) -> Match:
        """Replace the fixture details of a match that has not started."""
        current = self.load_match(match.id)
        if current.status != MatchStatus.UPCOMING:
            raise StoreError(
                f"Match {match.id} is {current.status.value}, only upcoming matches can be edited"
            )
        return self.save_match(match, expected=SaveGuard.of(current))

    # ── Roster ───────────────────────────────────────────────────────

    @abstractmethod
    def save_team(self, team: Team) -> Team:
        ...

    @abstractmethod
    def list_teams(self) -> list[Team]:
        ...

    @abstractmethod
    def delete_team(self, team_id: str) -> None:
        """Remove the team and its players, or raise ``RecordNotFoundError``."""

    @abstractmethod
    def save_player(self, player: Player) -> Player:
        ...

    @abstractmethod
    def list_players(self, team_id: Optional[str] = None) -> list[Player]:
        ...

    @abstractmethod
    def delete_player(self, player_id: str) -> None:
        ...

    # ── Change feed ──────────────────────────────────────────────────

    def subscribe(self, match_id: str, callback: MatchListener) -> Callable[[], None]:
        """Register ``callback`` for saves of ``match_id``. Returns an unsubscribe function."""
        with self._listeners_lock:
            self._listeners[match_id].append(callback)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if callback in self._listeners.get(match_id, []):
                    self._listeners[match_id].remove(callback)

        return unsubscribe

    def _notify(self, match: Match) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners.get(match.id, []))
        for callback in listeners:
            try:
                callback(match.clone())
            except Exception:
                # A broken subscriber must not fail the write that already happened
                logger.exception("Change listener failed for match %s", match.id)


class InMemoryMatchStore(MatchStore):
    """Dict-backed store. Rows are kept serialised so reloads go through
    the same round-trip as a real backend."""

    def __init__(self) -> None:
        super().__init__()
        self._matches: dict[str, dict] = {}
        self._teams: dict[str, dict] = {}
        self._players: dict[str, dict] = {}
        self._lock = threading.Lock()

    def create_match(self, match: Match) -> Match:
        with self._lock:
            if match.id in self._matches:
                raise StoreError(f"Match {match.id} already exists")
            self._matches[match.id] = match.to_dict()
        logger.info("Created match %s (%s v %s)", match.id, match.team1_id, match.team2_id)
        return self.load_match(match.id)

    def load_match(self, match_id: str) -> Match:
        with self._lock:
            row = self._matches.get(match_id)
        if row is None:
            raise MatchNotFoundError(match_id)
        return Match.from_dict(row)

    def save_match(self, match: Match, expected: Optional[SaveGuard] = None) -> Match:
        with self._lock:
            row = self._matches.get(match.id)
            if row is None:
                raise MatchNotFoundError(match.id)
            if expected is not None:
                actual = SaveGuard(
                    MatchStatus(row["status"]), row["current_innings"], row["version"]
                )
                if actual != expected:
                    raise ConcurrentUpdateError(match.id, expected, actual)
            saved = match.clone()
            saved.version = row["version"] + 1
            self._matches[match.id] = saved.to_dict()
        self._notify(saved)
        return saved

    def delete_match(self, match_id: str) -> None:
        with self._lock:
            if self._matches.pop(match_id, None) is None:
                raise MatchNotFoundError(match_id)
        logger.info("Deleted match %s", match_id)

    def list_matches(self, status: Optional[MatchStatus] = None) -> list[Match]:
        with self._lock:
            rows = list(self._matches.values())
        matches = [Match.from_dict(r) for r in rows]
        if status is not None:
            matches = [m for m in matches if m.status == status]
        return matches

    def save_team(self, team: Team) -> Team:
        with self._lock:
            self._teams[team.id] = team.to_row()
        return team

    def list_teams(self) -> list[Team]:
        with self._lock:
            return [Team.from_row(r) for r in self._teams.values()]

    def save_player(self, player: Player) -> Player:
        with self._lock:
            self._players[player.id] = player.to_row()
        return player

    def list_players(self, team_id: Optional[str] = None) -> list[Player]:
        with self._lock:
            players = [Player.from_row(r) for r in self._players.values()]
        if team_id is not None:
            players = [p for p in players if p.team_id == team_id]
        return players

    def delete_team(self, team_id: str) -> None:
        with self._lock:
            if self._teams.pop(team_id, None) is None:
                raise RecordNotFoundError("Team", team_id)
            # Mirrors the cascade on players.team_id
            self._players = {pid: row for pid, row in self._players.items()
                             if row["team_id"] != team_id}
        logger.info("Deleted team %s", team_id)

    def delete_player(self, player_id: str) -> None:
        with self._lock:
            if self._players.pop(player_id, None) is None:
                raise RecordNotFoundError("Player", player_id)
        logger.info("Deleted player %s", player_id)
