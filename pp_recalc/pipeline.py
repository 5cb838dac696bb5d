from __future__ import annotations

"""
Leaderboard recalculation pipeline.

    leaderboard -> concurrent best-play fetch (joined) -> per play:
    ensure beatmap on disk -> calculate -> results by player name

Only the per-player score fetch is allowed to fail softly (empty list).
Leaderboard, beatmap and calculation failures abort the whole run.
"""

from typing import Dict, List

from loguru import logger

from .artifact_store import ArtifactStore
from .calculate import calculate
from .config import (
    BRANCH_MAX,
    BRANCH_MIN,
    FETCH_MAX_WORKERS,
    MODE_MAX,
    MODE_MIN,
    VERSION_MAX,
    VERSION_MIN,
    RecalculationResult,
)
from .engines import EngineRegistry
from .errors import InvalidParameter
from .fan_out import fetch_all_player_scores
from .pipeline_types import CalculationVariant
from .ranking_client import RankingClient

PPResults = Dict[str, List[RecalculationResult]]


def validate_mode(mode: int) -> int:
    if not MODE_MIN <= mode <= MODE_MAX:
        raise InvalidParameter(f"Invalid mode. Must be between {MODE_MIN} and {MODE_MAX}.")
    return mode


def parse_variant(version: int, branch: int, rx: bool = False) -> CalculationVariant:
    if not VERSION_MIN <= version <= VERSION_MAX:
        raise InvalidParameter(f"Invalid version. Must be between {VERSION_MIN} and {VERSION_MAX}.")
    if not BRANCH_MIN <= branch <= BRANCH_MAX:
        raise InvalidParameter(f"Invalid branch. Must be between {BRANCH_MIN} and {BRANCH_MAX}.")
    return CalculationVariant.from_codes(version, branch, rx)


def run_recalculation(
    mode: int,
    variant: CalculationVariant,
    client: RankingClient,
    store: ArtifactStore,
    engines: EngineRegistry,
    max_workers: int = FETCH_MAX_WORKERS,
) -> PPResults:
    validate_mode(mode)
    logger.info(
        "Calculating PP for leaderboard in mode {} (ruleset={}, branch={}, rx={})",
        mode, variant.ruleset.name, variant.branch.name, variant.relax,
    )

    # --- 1) Leaderboard (fatal on failure) ---
    leaderboard = client.fetch_leaderboard(mode)

    # --- 2) Fan-out best plays, joined ---
    player_scores = fetch_all_player_scores(client, leaderboard, mode, max_workers=max_workers)

    # --- 3) Beatmaps + calculation, sequential in join order ---
    results: PPResults = {}
    for entry, scores in player_scores:
        per_player: List[RecalculationResult] = []
        for play in scores:
            beatmap_id = play.beatmap.id
            store.ensure_present(beatmap_id)
            per_player.append(
                calculate(store.path_for(beatmap_id), play, variant, engines)
            )
        results[entry.name] = per_player
        logger.info("Recalculated {} plays for player '{}'", len(per_player), entry.name)

    logger.info("Finished calculating PP for {} players.", len(results))
    return results
