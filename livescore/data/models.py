"""
Scoring data model.

Defines the match aggregate that flows through the scoring engine,
the match service and the stores, plus the roster records the
statistics tables are built from.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from livescore.utils.overs import Overs


class MatchStatus(Enum):
    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"


class TossChoice(Enum):
    BAT = "bat"
    BOWL = "bowl"


class TeamStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass
class Team:
    id: str
    name: str
    status: TeamStatus = TeamStatus.ACTIVE
    logo: Optional[str] = None

    def to_row(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "status": self.status.value, "logo": self.logo}

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Team":
        return cls(
            id=row["id"],
            name=row["name"],
            status=TeamStatus(row.get("status") or "active"),
            logo=row.get("logo"),
        )


@dataclass
class Player:
    id: str
    name: str
    team_id: str
    role: str = "batsman"

    def to_row(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "team_id": self.team_id, "role": self.role}

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Player":
        return cls(
            id=row["id"],
            name=row["name"],
            team_id=row["team_id"],
            role=row.get("role") or "batsman",
        )


@dataclass
class BattingCard:
    """One batter's line in an innings."""
    runs: int = 0
    balls_faced: int = 0
    fours: int = 0
    sixes: int = 0
    is_out: bool = False


@dataclass
class BowlingCard:
    """One bowler's line in an innings. ``balls`` counts legal deliveries."""
    balls: int = 0
    runs: int = 0
    wickets: int = 0
    wides: int = 0
    maidens: int = 0

    @property
    def overs(self) -> Overs:
        return Overs.from_ball_count(self.balls)


@dataclass
class FallOfWicket:
    runs: int
    wicket_number: int
    overs: Overs
    player_id: Optional[str] = None


@dataclass
class Innings:
    """One team's batting turn."""

    team_id: str
    runs: int = 0
    wickets: int = 0
    overs: Overs = field(default_factory=Overs)
    extras: int = 0

    fall_of_wickets: list[FallOfWicket] = field(default_factory=list)
    batting: dict[str, BattingCard] = field(default_factory=dict)
    bowling: dict[str, BowlingCard] = field(default_factory=dict)

    @property
    def score_line(self) -> str:
        """Scoreboard string, e.g. '145/6 (18.2 ov)'."""
        return f"{self.runs}/{self.wickets} ({self.overs} ov)"

    def to_row(self, match_id: str, innings_number: int) -> dict[str, Any]:
        """Row for the ``innings`` table."""
        return {
            "match_id": match_id,
            "innings_number": innings_number,
            "team_id": self.team_id,
            "runs": self.runs,
            "wickets": self.wickets,
            "overs": self.overs.to_float(),
            "extras": self.extras,
            "fall_of_wickets": [
                {
                    "runs": f.runs,
                    "wicket_number": f.wicket_number,
                    "overs": f.overs.to_float(),
                    "player_id": f.player_id,
                }
                for f in self.fall_of_wickets
            ],
            "batting": {pid: vars(card).copy() for pid, card in self.batting.items()},
            "bowling": {pid: vars(card).copy() for pid, card in self.bowling.items()},
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Innings":
        return cls(
            team_id=row["team_id"],
            runs=row.get("runs") or 0,
            wickets=row.get("wickets") or 0,
            overs=Overs.from_float(row.get("overs") or 0.0),
            extras=row.get("extras") or 0,
            fall_of_wickets=[
                FallOfWicket(
                    runs=f["runs"],
                    wicket_number=f["wicket_number"],
                    overs=Overs.from_float(f["overs"]),
                    player_id=f.get("player_id"),
                )
                for f in (row.get("fall_of_wickets") or [])
            ],
            batting={pid: BattingCard(**c) for pid, c in (row.get("batting") or {}).items()},
            bowling={pid: BowlingCard(**c) for pid, c in (row.get("bowling") or {}).items()},
        )


@dataclass
class Match:
    """The match aggregate owned by the scoring engine."""

    id: str
    team1_id: str
    team2_id: str
    total_overs: int
    venue: str = ""
    date: str = ""
    status: MatchStatus = MatchStatus.UPCOMING
    current_innings: Optional[int] = None
    toss_winner_id: Optional[str] = None
    toss_choice: Optional[TossChoice] = None

    innings1: Optional[Innings] = None
    innings2: Optional[Innings] = None

    winner_id: Optional[str] = None
    mvp_id: Optional[str] = None
    result: Optional[str] = None

    # Bumped by the store on every save
    version: int = 0

    @property
    def is_live(self) -> bool:
        return self.status == MatchStatus.LIVE

    @property
    def is_complete(self) -> bool:
        return self.status == MatchStatus.COMPLETED

    @property
    def active_innings(self) -> Optional[Innings]:
        if self.current_innings == 1:
            return self.innings1
        if self.current_innings == 2:
            return self.innings2
        return None

    @property
    def format_limit(self) -> Overs:
        return Overs.from_overs(self.total_overs)

    def other_team(self, team_id: str) -> str:
        if team_id == self.team1_id:
            return self.team2_id
        if team_id == self.team2_id:
            return self.team1_id
        raise ValueError(f"Team {team_id} is not playing in match {self.id}")

    def clone(self) -> "Match":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        """Row for the ``matches`` table plus nested innings rows."""
        return {
            "id": self.id,
            "team1_id": self.team1_id,
            "team2_id": self.team2_id,
            "total_overs": self.total_overs,
            "venue": self.venue,
            "date": self.date,
            "status": self.status.value,
            "current_innings": self.current_innings,
            "toss_winner_id": self.toss_winner_id,
            "toss_choice": self.toss_choice.value if self.toss_choice else None,
            "winner_id": self.winner_id,
            "mvp_id": self.mvp_id,
            "result": self.result,
            "version": self.version,
            "innings": [
                inn.to_row(self.id, number)
                for number, inn in ((1, self.innings1), (2, self.innings2))
                if inn is not None
            ],
        }

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "Match":
        innings = {i["innings_number"]: Innings.from_row(i) for i in (row.get("innings") or [])}
        choice = row.get("toss_choice")
        return cls(
            id=row["id"],
            team1_id=row["team1_id"],
            team2_id=row["team2_id"],
            total_overs=row["total_overs"],
            venue=row.get("venue") or "",
            date=row.get("date") or "",
            status=MatchStatus(row.get("status") or "upcoming"),
            current_innings=row.get("current_innings"),
            toss_winner_id=row.get("toss_winner_id"),
            toss_choice=TossChoice(choice) if choice else None,
            innings1=innings.get(1),
            innings2=innings.get(2),
            winner_id=row.get("winner_id"),
            mvp_id=row.get("mvp_id"),
            result=row.get("result"),
            version=row.get("version") or 0,
        )
