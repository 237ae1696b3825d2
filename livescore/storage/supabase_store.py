"""
Supabase-backed match store.

Matches live in the ``matches`` table and each innings in ``innings``
keyed by ``(match_id, innings_number)``. Scorecards and fall of wickets
are kept as JSON columns on the innings row. Conditional saves filter
the update on the expected status, innings and version so a second
writer that loaded the same state gets zero rows back and is rejected.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from supabase import Client, create_client

from livescore.config import EngineConfig, get_config
from livescore.data.models import Match, MatchStatus, Player, Team
from livescore.storage.store import (
    ConcurrentUpdateError,
    MatchNotFoundError,
    MatchStore,
    RecordNotFoundError,
    SaveGuard,
    StoreError,
)

logger = logging.getLogger(__name__)

_JSON_COLUMNS = ("fall_of_wickets", "batting", "bowling")


def _encode_innings(row: dict[str, Any]) -> dict[str, Any]:
    out = dict(row)
    for col in _JSON_COLUMNS:
        out[col] = json.dumps(row.get(col) or ([] if col == "fall_of_wickets" else {}))
    return out


def _decode_innings(row: dict[str, Any]) -> dict[str, Any]:
    out = dict(row)
    for col in _JSON_COLUMNS:
        value = row.get(col)
        if isinstance(value, str):
            out[col] = json.loads(value)
    return out


class SupabaseMatchStore(MatchStore):
    """Typed wrapper around Supabase for match persistence."""

    def __init__(self, client: Optional[Client] = None, config: Optional[EngineConfig] = None):
        super().__init__()
        cfg = config or get_config()
        self._tables = cfg.supabase
        if client is None:
            if not cfg.has_supabase:
                raise StoreError("Supabase not configured: set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
            client = create_client(cfg.supabase.url, cfg.supabase.service_role_key)
        self._client = client

    # ── Matches ──────────────────────────────────────────────────────

    def create_match(self, match: Match) -> Match:
        row = match.to_dict()
        innings = row.pop("innings")
        try:
            self._client.table(self._tables.matches_table).insert(row).execute()
            if innings:
                self._client.table(self._tables.innings_table).insert(
                    [_encode_innings(i) for i in innings]
                ).execute()
        except Exception as e:
            logger.error("create_match %s: %s", match.id, e)
            raise StoreError(f"Failed to create match {match.id}: {e}") from e
        logger.info("Created match %s (%s v %s)", match.id, match.team1_id, match.team2_id)
        return match.clone()

    def load_match(self, match_id: str) -> Match:
        try:
            resp = (self._client.table(self._tables.matches_table)
                    .select(f"*, {self._tables.innings_table}(*)")
                    .eq("id", match_id)
                    .limit(1)
                    .execute())
        except Exception as e:
            logger.error("load_match %s: %s", match_id, e)
            raise StoreError(f"Failed to load match {match_id}: {e}") from e
        if not resp.data:
            raise MatchNotFoundError(match_id)
        return self._match_from_row(resp.data[0])

    def save_match(self, match: Match, expected: Optional[SaveGuard] = None) -> Match:
        """Write the match row and its innings in one database transaction.

        Goes through the ``save_match_state`` Postgres function (see
        ``schema.sql``), which applies the guard, updates ``matches`` and
        upserts ``innings`` together and returns the new version, or null
        when the guard matched no row.
        """
        row = match.to_dict()
        innings = row.pop("innings")
        row.pop("id")
        row["version"] = match.version + 1
        params = {
            "p_match_id": match.id,
            "p_match": row,
            "p_innings": [_encode_innings(i) for i in innings],
            "p_guarded": expected is not None,
            "p_expected_status": expected.status.value if expected else None,
            "p_expected_innings": expected.current_innings if expected else None,
            "p_expected_version": expected.version if expected else None,
        }

        try:
            resp = self._client.rpc(self._tables.save_function, params).execute()
        except Exception as e:
            logger.error("save_match %s: %s", match.id, e)
            raise StoreError(f"Failed to save match {match.id}: {e}") from e

        if resp.data is None or resp.data == []:
            # No row matched: either gone or moved on under us
            current = self.load_match(match.id)
            if expected is None:
                raise StoreError(f"Save of match {match.id} updated no rows")
            raise ConcurrentUpdateError(match.id, expected, SaveGuard.of(current))

        saved = match.clone()
        saved.version = row["version"]
        self._notify(saved)
        return saved

    def delete_match(self, match_id: str) -> None:
        try:
            self._client.table(self._tables.innings_table).delete().eq("match_id", match_id).execute()
            resp = self._client.table(self._tables.matches_table).delete().eq("id", match_id).execute()
        except Exception as e:
            logger.error("delete_match %s: %s", match_id, e)
            raise StoreError(f"Failed to delete match {match_id}: {e}") from e
        if not resp.data:
            raise MatchNotFoundError(match_id)
        logger.info("Deleted match %s", match_id)

    def list_matches(self, status: Optional[MatchStatus] = None) -> list[Match]:
        try:
            q = (self._client.table(self._tables.matches_table)
                 .select(f"*, {self._tables.innings_table}(*)"))
            if status is not None:
                q = q.eq("status", status.value)
            resp = q.order("date").execute()
        except Exception as e:
            logger.error("list_matches: %s", e)
            raise StoreError(f"Failed to list matches: {e}") from e
        return [self._match_from_row(r) for r in resp.data or []]

    def _match_from_row(self, row: dict[str, Any]) -> Match:
        row = dict(row)
        row["innings"] = [_decode_innings(i) for i in row.pop(self._tables.innings_table, None) or []]
        return Match.from_dict(row)

    # ── Roster ───────────────────────────────────────────────────────

    def save_team(self, team: Team) -> Team:
        try:
            self._client.table(self._tables.teams_table).upsert(team.to_row()).execute()
        except Exception as e:
            logger.error("save_team %s: %s", team.id, e)
            raise StoreError(f"Failed to save team {team.id}: {e}") from e
        return team

    def list_teams(self) -> list[Team]:
        try:
            resp = self._client.table(self._tables.teams_table).select("*").order("name").execute()
        except Exception as e:
            logger.error("list_teams: %s", e)
            raise StoreError(f"Failed to list teams: {e}") from e
        return [Team.from_row(r) for r in resp.data or []]

    def save_player(self, player: Player) -> Player:
        try:
            self._client.table(self._tables.players_table).upsert(player.to_row()).execute()
        except Exception as e:
            logger.error("save_player %s: %s", player.id, e)
            raise StoreError(f"Failed to save player {player.id}: {e}") from e
        return player

    def list_players(self, team_id: Optional[str] = None) -> list[Player]:
        try:
            q = self._client.table(self._tables.players_table).select("*")
            if team_id is not None:
                q = q.eq("team_id", team_id)
            resp = q.execute()
        except Exception as e:
            logger.error("list_players: %s", e)
            raise StoreError(f"Failed to list players: {e}") from e
        return [Player.from_row(r) for r in resp.data or []]

    def delete_team(self, team_id: str) -> None:
        self._delete_roster(self._tables.teams_table, "Team", team_id)

    def delete_player(self, player_id: str) -> None:
        self._delete_roster(self._tables.players_table, "Player", player_id)

    def _delete_roster(self, table: str, kind: str, record_id: str) -> None:
        try:
            resp = self._client.table(table).delete().eq("id", record_id).execute()
        except Exception as e:
            logger.error("delete %s %s: %s", kind.lower(), record_id, e)
            raise StoreError(f"Failed to delete {kind.lower()} {record_id}: {e}") from e
        if not resp.data:
            raise RecordNotFoundError(kind, record_id)
        logger.info("Deleted %s %s", kind.lower(), record_id)
