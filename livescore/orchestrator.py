"""
Live Scoring Engine command line entry point.

Drives the match service from the terminal:
1. Simulate: play a synthetic match ball by ball through the service
2. Show: print the scoreboard of a stored match

Usage:
    python -m livescore.orchestrator --simulate --overs 5 --seed 7
    python -m livescore.orchestrator --show match-1234
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
from typing import Optional

from livescore.config import EngineConfig
from livescore.data.models import Match, TossChoice
from livescore.service import MatchService
from livescore.storage.store import InMemoryMatchStore, MatchNotFoundError, MatchStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("livescore.orchestrator")

SQUAD_SIZE = 11
BOWLERS_PER_SIDE = 5

# (outcome, weight); "W" wicket, "X" one-run extra
BALL_OUTCOMES = [
    (0, 30), (1, 30), (2, 10), (3, 2), (4, 12), (6, 5), ("W", 6), ("X", 5),
]


def build_store(config: EngineConfig, in_memory: bool = False) -> MatchStore:
    if config.has_supabase and not in_memory:
        from livescore.storage.supabase_store import SupabaseMatchStore
        logger.info("Using Supabase store at %s", config.supabase.url)
        return SupabaseMatchStore(config=config)
    logger.info("Using in-memory store")
    return InMemoryMatchStore()


def _squad(service: MatchService, team_id: str, name: str) -> list[str]:
    service.add_team(name, team_id=team_id)
    return [
        service.add_player(f"{name} {i + 1}", team_id, player_id=f"{team_id}-p{i + 1}").id
        for i in range(SQUAD_SIZE)
    ]


def simulate_match(
    service: MatchService,
    total_overs: int = 20,
    rng: Optional[random.Random] = None,
) -> Match:
    """Play a random match through the service until it completes."""
    rng = rng or random.Random()
    squads = {
        "thunder": _squad(service, "thunder", "Thunder"),
        "strikers": _squad(service, "strikers", "Strikers"),
    }
    toss_winner = rng.choice(list(squads))
    match = service.create_match(
        "thunder", "strikers", total_overs=total_overs, venue="Simulation Oval",
        toss_winner_id=toss_winner, toss_choice=rng.choice(list(TossChoice)),
    )
    match = service.start_match(match.id).match

    outcomes = [o for o, _ in BALL_OUTCOMES]
    weights = [w for _, w in BALL_OUTCOMES]

    while not match.is_complete:
        inn = match.active_innings
        batting = squads[inn.team_id]
        bowling = squads[match.other_team(inn.team_id)][-BOWLERS_PER_SIDE:]
        striker = batting[min(inn.wickets, SQUAD_SIZE - 1)]
        bowler = bowling[inn.overs.completed % BOWLERS_PER_SIDE]

        outcome = rng.choices(outcomes, weights)[0]
        if outcome == "W":
            t = service.record_delivery(match.id, 0, is_wicket=True,
                                        striker_id=striker, bowler_id=bowler)
        elif outcome == "X":
            t = service.record_delivery(match.id, 1, is_extra=True,
                                        striker_id=striker, bowler_id=bowler)
        else:
            t = service.record_delivery(match.id, outcome,
                                        striker_id=striker, bowler_id=bowler)
        match = t.match

        # Only reached when the service runs with auto transitions off
        if t.innings_complete and match.current_innings == 1:
            match = service.switch_innings(match.id).match
        elif t.decision.decided and not match.is_complete:
            match = service.end_match(match.id, t.decision.winner_id, None,
                                      t.decision.description).match

    return match


def run_simulation(config: EngineConfig, total_overs: int, seed: Optional[int],
                   in_memory: bool) -> None:
    logger.info("=" * 60)
    logger.info("LIVE SCORING ENGINE - SIMULATION")
    logger.info("=" * 60)

    service = MatchService(build_store(config, in_memory), config=config)
    match = simulate_match(service, total_overs=total_overs, rng=random.Random(seed))

    print()
    for number, inn in ((1, match.innings1), (2, match.innings2)):
        if inn is not None:
            print(f"Innings {number}: {inn.team_id:<10} {inn.score_line}  extras {inn.extras}")
    print(f"Result: {match.result}")
    print(f"MVP:    {match.mvp_id}")
    print(f"Match id: {match.id}")


def run_show(config: EngineConfig, match_id: str) -> None:
    service = MatchService(build_store(config), config=config)
    try:
        board = service.scoreboard(match_id)
    except MatchNotFoundError as e:
        logger.error("%s", e)
        sys.exit(1)
    for key, value in board.items():
        print(f"{key:>18}: {value}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Live Cricket Scoring Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m livescore.orchestrator --simulate --overs 5 --seed 7
  python -m livescore.orchestrator --show match-1234
        """,
    )

    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--simulate", action="store_true", help="Simulate a match ball by ball")
    mode.add_argument("--show", metavar="MATCH_ID", help="Print the scoreboard of a stored match")

    parser.add_argument("--overs", type=int, help="Overs per innings (defaults to the configured format)")
    parser.add_argument("--seed", type=int, help="Random seed for the simulation")
    parser.add_argument("--memory", action="store_true", help="Use the in-memory store even if Supabase is configured")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    config = EngineConfig.from_env()
    logging.getLogger().setLevel(logging.DEBUG if args.verbose else config.log_level)

    if args.simulate:
        run_simulation(config, args.overs or config.default_overs, args.seed, args.memory)
    elif args.show:
        if not config.has_supabase:
            logger.error("--show needs a persistent store: set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
            sys.exit(1)
        run_show(config, args.show)


if __name__ == "__main__":
    main()
