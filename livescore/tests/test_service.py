"""Tests for the match service: persistence, locking and auto transitions."""

from __future__ import annotations

import threading

import pytest

from livescore.config import EngineConfig
from livescore.data.models import Match, MatchStatus, TossChoice
from livescore.service import MatchService
from livescore.state import scoring
from livescore.state.errors import InvalidEventError, InvalidTransitionError
from livescore.storage.store import (
    ConcurrentUpdateError,
    InMemoryMatchStore,
    MatchNotFoundError,
    SaveGuard,
)
from livescore.utils.overs import Overs


@pytest.fixture
def match_id(service: MatchService) -> str:
    match = service.create_match(
        "thunder", "strikers", total_overs=2,
        toss_winner_id="thunder", toss_choice=TossChoice.BAT, match_id="svc_001",
    )
    service.start_match(match.id)
    return match.id


def play_over(service: MatchService, match_id: str, runs: int, balls: int = 6) -> Match:
    match = None
    for _ in range(balls):
        match = service.record_delivery(match_id, runs).match
    return match


class TestMatchCreation:
    def test_create_defaults_to_format(self, service: MatchService, engine_config: EngineConfig):
        match = service.create_match("a", "b")
        assert match.total_overs == engine_config.default_overs
        assert match.status == MatchStatus.UPCOMING
        assert match.id.startswith("match-")

    def test_same_team_rejected(self, service: MatchService):
        with pytest.raises(InvalidEventError):
            service.create_match("a", "a")

    def test_bad_overs_rejected(self, service: MatchService):
        with pytest.raises(InvalidEventError):
            service.create_match("a", "b", total_overs=0)

    def test_toss_winner_must_play(self, service: MatchService):
        with pytest.raises(InvalidEventError):
            service.create_match("a", "b", toss_winner_id="c")


class TestFixtureManagement:
    def test_update_upcoming(self, service: MatchService):
        match = service.create_match("thunder", "strikers", total_overs=20, match_id="fx_001")
        edited = service.update_match(match.id, venue="Riverside", total_overs=10,
                                      toss_winner_id="strikers", toss_choice=TossChoice.BOWL)
        assert edited.total_overs == 10
        assert service.get_match(match.id).venue == "Riverside"

        service.start_match(match.id)
        assert service.get_match(match.id).innings1.team_id == "thunder"

    def test_update_started_rejected(self, service: MatchService, match_id: str):
        with pytest.raises(InvalidTransitionError):
            service.update_match(match_id, venue="Elsewhere")

    def test_update_validates(self, service: MatchService):
        match = service.create_match("thunder", "strikers", match_id="fx_002")
        with pytest.raises(InvalidEventError):
            service.update_match(match.id, team2_id="thunder")
        with pytest.raises(InvalidEventError):
            service.update_match(match.id, status=MatchStatus.LIVE)
        assert service.get_match(match.id).team2_id == "strikers"

    def test_delete_match(self, service: MatchService, match_id: str):
        service.delete_match(match_id)
        with pytest.raises(MatchNotFoundError):
            service.get_match(match_id)

    def test_delete_roster(self, service: MatchService, store: InMemoryMatchStore):
        service.add_team("Thunder", team_id="thunder")
        service.add_player("Ace", "thunder", player_id="t1")
        service.add_player("Bo", "thunder", player_id="t2")
        service.delete_player("t2")
        assert [p.id for p in store.list_players("thunder")] == ["t1"]
        service.delete_team("thunder")
        assert store.list_teams() == []
        assert store.list_players() == []


class TestScoringThroughService:
    def test_delivery_persisted(self, service: MatchService, store: InMemoryMatchStore, match_id: str):
        service.record_delivery(match_id, 4, striker_id="t1", bowler_id="s1")
        stored = store.load_match(match_id)
        assert stored.innings1.runs == 4
        assert stored.innings1.overs == Overs(0, 1)
        assert stored.innings1.batting["t1"].runs == 4
        assert stored.version == 2  # start + delivery

    def test_rejected_event_not_persisted(self, service: MatchService, store: InMemoryMatchStore,
                                          match_id: str):
        before = store.load_match(match_id)
        with pytest.raises(InvalidEventError):
            service.record_delivery(match_id, -2)
        assert store.load_match(match_id) == before

    def test_first_innings_auto_switch(self, service: MatchService, match_id: str):
        play_over(service, match_id, 1)
        match = play_over(service, match_id, 2)
        assert match.current_innings == 2
        assert match.innings1.runs == 18
        assert match.innings1.overs == Overs(2, 0)
        assert match.innings2.team_id == "strikers"

    def test_chase_auto_completes(self, service: MatchService, match_id: str):
        play_over(service, match_id, 1, balls=12)  # 12 off two overs
        t = None
        for _ in range(3):
            t = service.record_delivery(match_id, 6, striker_id="s1")
        match = t.match
        assert match.status == MatchStatus.COMPLETED
        assert match.winner_id == "strikers"
        assert match.result == "strikers won by 10 wickets"
        assert match.mvp_id == "s1"
        assert t.decision.decided

    def test_tie_auto_completes(self, service: MatchService, match_id: str):
        play_over(service, match_id, 1, balls=12)
        match = play_over(service, match_id, 1, balls=12)
        assert match.status == MatchStatus.COMPLETED
        assert match.winner_id is None
        assert match.result == "Match Tied"

    def test_manual_switch_after_auto_is_noop(self, service: MatchService, match_id: str):
        play_over(service, match_id, 1, balls=12)
        service.record_delivery(match_id, 3)
        t = service.switch_innings(match_id)
        assert not t.applied
        assert t.match.innings2.runs == 3

    def test_end_match_idempotent(self, service: MatchService, match_id: str):
        service.end_match(match_id, "thunder", "t1", "thunder won")
        again = service.end_match(match_id, "strikers", "s1")
        assert not again.applied
        assert service.get_match(match_id).winner_id == "thunder"

    def test_no_scoring_after_completion(self, service: MatchService, match_id: str):
        service.end_match(match_id, "thunder", "t1")
        with pytest.raises(InvalidTransitionError):
            service.record_delivery(match_id, 1)

    def test_set_overs_can_complete_innings(self, service: MatchService, match_id: str):
        t = service.set_overs(match_id, "2.0")
        assert t.innings_complete
        assert t.match.current_innings == 2


class TestManualMode:
    def test_no_auto_transitions(self, store: InMemoryMatchStore, engine_config: EngineConfig):
        service = MatchService(store, config=engine_config, auto_transitions=False)
        match = service.create_match("thunder", "strikers", total_overs=1)
        service.start_match(match.id)
        t = None
        for _ in range(6):
            t = service.record_delivery(match.id, 1)
        assert t.innings_complete
        assert t.match.current_innings == 1
        assert service.switch_innings(match.id).match.current_innings == 2

    def test_manual_end_follows_decision(self, store: InMemoryMatchStore, engine_config: EngineConfig):
        service = MatchService(store, config=engine_config, auto_transitions=False)
        match = service.create_match("thunder", "strikers", total_overs=1)
        service.start_match(match.id)
        service.set_overs(match.id, "1.0")
        service.switch_innings(match.id)
        t = service.record_delivery(match.id, 4)
        assert t.decision.winner_id == "strikers"
        assert t.match.is_live

        with pytest.raises(InvalidEventError):
            service.end_match(match.id, "thunder", None)
        assert service.get_match(match.id).is_live

        ended = service.end_match(match.id, None, None).match
        assert ended.winner_id == "strikers"
        assert ended.result == "strikers won by 10 wickets"


class TestConcurrency:
    def test_stale_writer_rejected(self, service: MatchService, store: InMemoryMatchStore,
                                   match_id: str):
        loaded = store.load_match(match_id)
        service.record_delivery(match_id, 1)
        with pytest.raises(ConcurrentUpdateError):
            store.save_match(scoring.record_delivery(loaded, 4).match,
                             expected=SaveGuard.of(loaded))

    def test_parallel_deliveries_serialised(self, service: MatchService, store: InMemoryMatchStore):
        match = service.create_match("thunder", "strikers", total_overs=20, match_id="par_001")
        service.start_match(match.id)

        def bowl() -> None:
            for _ in range(5):
                service.record_delivery(match.id, 1)

        threads = [threading.Thread(target=bowl) for _ in range(4)]
        for th in threads:
            th.start()
        for th in threads:
            th.join()

        stored = store.load_match(match.id)
        assert stored.innings1.runs == 20
        assert stored.innings1.overs == Overs(3, 2)

    def test_duplicate_switch_triggers(self, service: MatchService, match_id: str):
        service.set_overs(match_id, "2.0")
        results = [service.switch_innings(match_id) for _ in range(3)]
        assert not any(t.applied for t in results)


class TestScoreboard:
    def test_chase_figures(self, service: MatchService, match_id: str):
        play_over(service, match_id, 2, balls=12)  # 24 in 2 overs
        service.record_delivery(match_id, 4)
        service.record_delivery(match_id, 2)
        board = service.scoreboard(match_id)

        assert board["current_innings"] == 2
        assert board["batting_team_id"] == "strikers"
        assert board["score"] == "6/0 (0.2 ov)"
        assert board["target"] == 25
        assert board["runs_needed"] == 19
        assert board["balls_remaining"] == 10
        assert board["required_run_rate"] == pytest.approx(11.4)
        assert board["current_run_rate"] == pytest.approx(18.0)

    def test_upcoming_board(self, service: MatchService):
        match = service.create_match("a", "b", total_overs=5)
        board = service.scoreboard(match.id)
        assert board["status"] == "upcoming"
        assert "score" not in board
