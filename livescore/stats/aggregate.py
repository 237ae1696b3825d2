"""
Tournament statistics built from completed matches.

Aggregates the per-innings scorecards into career batting and bowling
tables, team standings, and an MVP suggestion for a finished match.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Optional

from livescore.data.models import Innings, Match
from livescore.utils.overs import Overs
from livescore.utils.rates import economy_rate, strike_rate

WICKET_IMPACT_RUNS = 20  # One wicket weighed as 20 runs for MVP impact


@dataclass
class BattingLine:
    player_id: str
    matches: set[str] = field(default_factory=set)
    innings: int = 0
    runs: int = 0
    balls_faced: int = 0
    fours: int = 0
    sixes: int = 0
    outs: int = 0

    @property
    def strike_rate(self) -> float:
        return strike_rate(self.runs, self.balls_faced)

    @property
    def average(self) -> Optional[float]:
        return self.runs / self.outs if self.outs else None


@dataclass
class BowlingLine:
    player_id: str
    matches: set[str] = field(default_factory=set)
    balls: int = 0
    runs: int = 0
    wickets: int = 0

    @property
    def overs(self) -> Overs:
        return Overs.from_ball_count(self.balls)

    @property
    def economy(self) -> float:
        return economy_rate(self.runs, self.overs)


@dataclass
class TeamRecord:
    team_id: str
    played: int = 0
    won: int = 0
    lost: int = 0
    tied: int = 0

    @property
    def points(self) -> int:
        return self.won * 2 + self.tied


def _completed(matches: Iterable[Match]) -> list[Match]:
    return [m for m in matches if m.is_complete]


def _innings(match: Match) -> list[Innings]:
    return [inn for inn in (match.innings1, match.innings2) if inn is not None]


def batting_table(matches: Iterable[Match]) -> list[BattingLine]:
    """Career batting lines, most runs first."""
    lines: dict[str, BattingLine] = {}
    for match in _completed(matches):
        for inn in _innings(match):
            for pid, card in inn.batting.items():
                line = lines.setdefault(pid, BattingLine(player_id=pid))
                line.matches.add(match.id)
                line.innings += 1
                line.runs += card.runs
                line.balls_faced += card.balls_faced
                line.fours += card.fours
                line.sixes += card.sixes
                line.outs += int(card.is_out)
    return sorted(lines.values(), key=lambda line: (-line.runs, line.player_id))


def bowling_table(matches: Iterable[Match]) -> list[BowlingLine]:
    """Career bowling lines, most wickets first, then cheapest."""
    lines: dict[str, BowlingLine] = {}
    for match in _completed(matches):
        for inn in _innings(match):
            for pid, card in inn.bowling.items():
                line = lines.setdefault(pid, BowlingLine(player_id=pid))
                line.matches.add(match.id)
                line.balls += card.balls
                line.runs += card.runs
                line.wickets += card.wickets
    return sorted(lines.values(), key=lambda line: (-line.wickets, line.economy, line.player_id))


def team_standings(matches: Iterable[Match]) -> list[TeamRecord]:
    """Played/won/lost/tied per team, ordered by points."""
    records: dict[str, TeamRecord] = {}
    for match in _completed(matches):
        for team_id in (match.team1_id, match.team2_id):
            rec = records.setdefault(team_id, TeamRecord(team_id=team_id))
            rec.played += 1
            if match.winner_id is None:
                rec.tied += 1
            elif match.winner_id == team_id:
                rec.won += 1
            else:
                rec.lost += 1
    return sorted(records.values(), key=lambda r: (-r.points, -r.won, r.team_id))


def suggest_mvp(match: Match, winner_id: Optional[str] = None) -> Optional[str]:
    """Highest-impact player (runs + 20 per wicket), from the winning side if any.

    ``winner_id`` defaults to the match winner; pass it to rank a match
    that has been decided but not yet ended.
    """
    winner_id = winner_id or match.winner_id
    impact: dict[str, int] = defaultdict(int)
    winners: set[str] = set()

    for inn in _innings(match):
        batting_side_won = winner_id is not None and inn.team_id == winner_id
        for pid, card in inn.batting.items():
            impact[pid] += card.runs
            if batting_side_won:
                winners.add(pid)
        for pid, card in inn.bowling.items():
            impact[pid] += card.wickets * WICKET_IMPACT_RUNS
            # Bowlers in an innings belong to the fielding side
            if winner_id is not None and inn.team_id != winner_id:
                winners.add(pid)

    candidates = winners or set(impact)
    if not candidates:
        return None
    return max(sorted(candidates), key=lambda pid: impact[pid])
