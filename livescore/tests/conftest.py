"""Shared test fixtures for live scoring engine tests."""

from __future__ import annotations

import pytest

from livescore.config import EngineConfig, ScoringConfig
from livescore.data.models import Match
from livescore.service import MatchService
from livescore.state import scoring
from livescore.storage.store import InMemoryMatchStore


@pytest.fixture
def engine_config() -> EngineConfig:
    """Standard test configuration."""
    return EngineConfig(scoring=ScoringConfig(auto_transitions=True))


@pytest.fixture
def upcoming_match() -> Match:
    """Two-over match, Thunder won the toss and bat."""
    return Match(
        id="test_001",
        team1_id="thunder",
        team2_id="strikers",
        total_overs=2,
        venue="Test Ground",
        date="2026-10-19",
        toss_winner_id="thunder",
    )


@pytest.fixture
def live_match(upcoming_match: Match) -> Match:
    return scoring.start_match(upcoming_match).match


@pytest.fixture
def store() -> InMemoryMatchStore:
    return InMemoryMatchStore()


@pytest.fixture
def service(store: InMemoryMatchStore, engine_config: EngineConfig) -> MatchService:
    return MatchService(store, config=engine_config)
