"""
Configuration management for the Live Scoring Engine.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root
BASE_DIR = Path(__file__).parent.parent
load_dotenv(BASE_DIR / ".env")


class MatchFormat(Enum):
    T10 = "t10"
    T20 = "t20"
    ODI = "odi"


@dataclass(frozen=True)
class SupabaseConfig:
    """Hosted Postgres backend holding the matches/innings tables."""
    url: str = ""
    service_role_key: str = ""
    matches_table: str = "matches"
    innings_table: str = "innings"
    teams_table: str = "teams"
    players_table: str = "players"
    save_function: str = "save_match_state"


@dataclass(frozen=True)
class ScoringConfig:
    """Scoring rules shared by the engine and the match service."""
    default_format: MatchFormat = MatchFormat.T20
    auto_transitions: bool = True  # Auto switch innings / end match


@dataclass
class EngineConfig:
    """Top-level engine configuration."""
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)

    log_level: str = "INFO"
    base_dir: Path = field(default_factory=lambda: BASE_DIR)

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase.url and self.supabase.service_role_key)

    @property
    def default_overs(self) -> int:
        return FORMAT_OVERS[self.scoring.default_format]

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from environment variables."""
        return cls(
            supabase=SupabaseConfig(
                url=os.getenv("SUPABASE_URL", ""),
                service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""),
            ),
            scoring=ScoringConfig(
                default_format=MatchFormat(os.getenv("LIVESCORE_FORMAT", "t20").lower()),
                auto_transitions=os.getenv("LIVESCORE_AUTO_TRANSITIONS", "true").lower() == "true",
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


# Format-specific constants
FORMAT_OVERS: dict[MatchFormat, int] = {
    MatchFormat.T10: 10,
    MatchFormat.T20: 20,
    MatchFormat.ODI: 50,
}

MAX_WICKETS = 10
BALLS_PER_OVER = 6


# Singleton
_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    global _config
    if _config is None:
        _config = EngineConfig.from_env()
    return _config
