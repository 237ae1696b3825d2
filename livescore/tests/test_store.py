"""Tests for the in-memory match store and change feed."""

from __future__ import annotations

import pytest

from livescore.data.models import Match, MatchStatus, Player, Team
from livescore.state import scoring
from livescore.storage.store import (
    ConcurrentUpdateError,
    InMemoryMatchStore,
    MatchNotFoundError,
    RecordNotFoundError,
    SaveGuard,
    StoreError,
)


class TestInMemoryStore:
    def test_create_and_load(self, store: InMemoryMatchStore, upcoming_match: Match):
        store.create_match(upcoming_match)
        assert store.load_match(upcoming_match.id) == upcoming_match

    def test_duplicate_create(self, store: InMemoryMatchStore, upcoming_match: Match):
        store.create_match(upcoming_match)
        with pytest.raises(StoreError):
            store.create_match(upcoming_match)

    def test_missing_match(self, store: InMemoryMatchStore):
        with pytest.raises(MatchNotFoundError):
            store.load_match("nope")
        with pytest.raises(KeyError):
            store.load_match("nope")

    def test_save_round_trip(self, store: InMemoryMatchStore, upcoming_match: Match):
        store.create_match(upcoming_match)
        match = scoring.start_match(upcoming_match).match
        for runs in (1, 4, 0, 2, 6, 1, 3):
            match = scoring.record_delivery(match, runs, striker_id="b1", bowler_id="w1").match
        saved = store.save_match(match)

        reloaded = store.load_match(match.id)
        assert reloaded == saved
        assert reloaded.innings1.overs == match.innings1.overs
        assert reloaded.innings1.batting == match.innings1.batting

    def test_version_bumped(self, store: InMemoryMatchStore, upcoming_match: Match):
        store.create_match(upcoming_match)
        saved = store.save_match(upcoming_match)
        assert saved.version == 1
        assert store.save_match(saved).version == 2

    def test_conditional_save(self, store: InMemoryMatchStore, upcoming_match: Match):
        store.create_match(upcoming_match)
        loaded = store.load_match(upcoming_match.id)
        started = scoring.start_match(loaded).match
        store.save_match(started, expected=SaveGuard.of(loaded))

        # A second writer that loaded the same upcoming state loses
        with pytest.raises(ConcurrentUpdateError) as exc:
            store.save_match(started, expected=SaveGuard.of(loaded))
        assert exc.value.actual.status == MatchStatus.LIVE

    def test_delete(self, store: InMemoryMatchStore, upcoming_match: Match):
        store.create_match(upcoming_match)
        store.delete_match(upcoming_match.id)
        with pytest.raises(MatchNotFoundError):
            store.delete_match(upcoming_match.id)

    def test_list_by_status(self, store: InMemoryMatchStore, upcoming_match: Match):
        store.create_match(upcoming_match)
        other = Match(id="test_002", team1_id="a", team2_id="b", total_overs=20)
        store.create_match(other)
        store.save_match(scoring.start_match(other).match)

        assert {m.id for m in store.list_matches()} == {"test_001", "test_002"}
        assert [m.id for m in store.list_matches(MatchStatus.LIVE)] == ["test_002"]

    def test_roster(self, store: InMemoryMatchStore):
        store.save_team(Team(id="t1", name="Thunder"))
        store.save_player(Player(id="p1", name="Ace", team_id="t1"))
        store.save_player(Player(id="p2", name="Bo", team_id="t2"))
        assert [t.name for t in store.list_teams()] == ["Thunder"]
        assert [p.id for p in store.list_players("t1")] == ["p1"]
        assert len(store.list_players()) == 2


class TestChangeFeed:
    def test_subscriber_notified(self, store: InMemoryMatchStore, upcoming_match: Match):
        store.create_match(upcoming_match)
        seen: list[Match] = []
        unsubscribe = store.subscribe(upcoming_match.id, seen.append)

        store.save_match(scoring.start_match(upcoming_match).match)
        assert len(seen) == 1
        assert seen[0].status == MatchStatus.LIVE

        unsubscribe()
        store.save_match(store.load_match(upcoming_match.id))
        assert len(seen) == 1

    def test_other_matches_not_notified(self, store: InMemoryMatchStore, upcoming_match: Match):
        store.create_match(upcoming_match)
        seen: list[Match] = []
        store.subscribe("other", seen.append)
        store.save_match(upcoming_match)
        assert seen == []

    def test_failing_subscriber_does_not_fail_save(self, store: InMemoryMatchStore, upcoming_match: Match):
        store.create_match(upcoming_match)

        def broken(_: Match) -> None:
            raise RuntimeError("boom")

        seen: list[Match] = []
        store.subscribe(upcoming_match.id, broken)
        store.subscribe(upcoming_match.id, seen.append)
        saved = store.save_match(upcoming_match)
        assert saved.version == 1
        assert len(seen) == 1


class TestEditing:
    def test_update_upcoming(self, store: InMemoryMatchStore, upcoming_match: Match):
        store.create_match(upcoming_match)
        edited = store.load_match(upcoming_match.id)
        edited.venue = "Riverside"
        edited.total_overs = 5
        saved = store.update_match(edited)
        assert saved.version == 1
        assert store.load_match(upcoming_match.id).venue == "Riverside"

    def test_update_started_match_rejected(self, store: InMemoryMatchStore, upcoming_match: Match):
        store.create_match(upcoming_match)
        store.save_match(scoring.start_match(upcoming_match).match)
        with pytest.raises(StoreError):
            store.update_match(upcoming_match)
        assert store.load_match(upcoming_match.id).status == MatchStatus.LIVE

    def test_delete_team_removes_players(self, store: InMemoryMatchStore):
        store.save_team(Team(id="t1", name="Thunder"))
        store.save_team(Team(id="t2", name="Strikers"))
        store.save_player(Player(id="p1", name="Ace", team_id="t1"))
        store.save_player(Player(id="p2", name="Bo", team_id="t2"))
        store.delete_team("t1")
        assert [t.id for t in store.list_teams()] == ["t2"]
        assert [p.id for p in store.list_players()] == ["p2"]

    def test_delete_missing_records(self, store: InMemoryMatchStore):
        with pytest.raises(RecordNotFoundError):
            store.delete_team("nope")
        with pytest.raises(KeyError):
            store.delete_player("nope")

    def test_delete_player(self, store: InMemoryMatchStore):
        store.save_player(Player(id="p1", name="Ace", team_id="t1"))
        store.delete_player("p1")
        assert store.list_players() == []
