from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Sequence, Tuple

from loguru import logger

from .config import FETCH_MAX_WORKERS, LeaderboardEntry, PlayRecord
from .ranking_client import RankingClient

PlayerScores = Tuple[LeaderboardEntry, List[PlayRecord]]


def _fetch_one(client: RankingClient, entry: LeaderboardEntry, mode: int) -> List[PlayRecord]:
    try:
        return client.fetch_player_scores(entry.player_id, mode)
    except Exception as e:
        logger.warning(
            "Score fetch failed for player '{}' ({}); treating as no scores: {}",
            entry.name, entry.player_id, e,
        )
        return []


def fetch_all_player_scores(
    client: RankingClient,
    entries: Sequence[LeaderboardEntry],
    mode: int,
    max_workers: int = FETCH_MAX_WORKERS,
) -> List[PlayerScores]:
    """
    Fetch best plays for every leaderboard entry concurrently.

    One task per entry; all tasks are joined before returning. The result
    is in completion order, not leaderboard order. A failed fetch yields an
    empty list for that player instead of failing the batch.
    """
    if not entries:
        return []

    workers = max(1, min(max_workers, len(entries)))
    out: List[PlayerScores] = []
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="score-fetch") as ex:
        futs = {ex.submit(_fetch_one, client, entry, mode): entry for entry in entries}
        for fut in as_completed(futs):
            entry = futs[fut]
            scores = fut.result()
            logger.info("Fetched {} scores for player '{}'", len(scores), entry.name)
            out.append((entry, scores))
    return out
