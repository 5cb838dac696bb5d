from __future__ import annotations

import json
from typing import Dict, List, Optional, Type, TypeVar
from urllib.parse import urlencode

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from .config import (
    BEST_SCORES_LIMIT,
    BEST_SCORES_SCOPE,
    LEADERBOARD_LIMIT,
    LeaderboardEntry,
    LeaderboardResponse,
    PlayRecord,
    ScoresResponse,
)
from .errors import UpstreamMalformed, UpstreamUnavailable
from .http_client import build_http_client
from .response_cache import TTLResponseCache

EnvelopeT = TypeVar("EnvelopeT", bound=BaseModel)


def cache_key(path: str, params: Dict[str, object]) -> str:
    """Deterministic key: endpoint path plus sorted query params."""
    query = urlencode(sorted((k, str(v)) for k, v in params.items()))
    return f"{path}?{query}"


class RankingClient:
    """
    Thin client for the ranking API. Every call goes through the shared
    TTL cache; the cached value is the validated envelope re-serialized
    as JSON.
    """

    def __init__(
        self,
        base_url: str,
        cache: TTLResponseCache,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.cache = cache
        self._client = http_client or build_http_client()

    def _get_envelope(self, path: str, params: Dict[str, object], model: Type[EnvelopeT]) -> EnvelopeT:
        key = cache_key(path, params)
        cached = self.cache.get(key)
        if cached is not None:
            try:
                return model.model_validate_json(cached)
            except ValidationError as e:
                # cache only ever holds validated payloads
                raise UpstreamMalformed(f"Corrupt cache entry for {key}: {e}") from e

        url = f"{self.base_url}/{path}"
        try:
            r = self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Request to {url} failed: {e}") from e
        if r.status_code >= 400:
            raise UpstreamUnavailable(f"HTTP {r.status_code} for {url}")

        try:
            envelope = model.model_validate(r.json())
        except (json.JSONDecodeError, ValueError) as e:
            raise UpstreamMalformed(f"Unexpected response from {url}: {e}") from e

        self.cache.set(key, envelope.model_dump_json())
        return envelope

    def fetch_leaderboard(self, mode: int) -> List[LeaderboardEntry]:
        logger.info("Fetching leaderboard for mode {}", mode)
        envelope = self._get_envelope(
            "get_leaderboard",
            {"mode": mode, "limit": LEADERBOARD_LIMIT},
            LeaderboardResponse,
        )
        logger.info("Fetched leaderboard with {} entries.", len(envelope.leaderboard))
        return envelope.leaderboard

    def fetch_player_scores(self, player_id: int, mode: int) -> List[PlayRecord]:
        envelope = self._get_envelope(
            "get_player_scores",
            {
                "id": player_id,
                "mode": mode,
                "scope": BEST_SCORES_SCOPE,
                "limit": BEST_SCORES_LIMIT,
            },
            ScoresResponse,
        )
        logger.info("Fetched {} scores for player {}", len(envelope.scores), player_id)
        return envelope.scores

    def close(self) -> None:
        self._client.close()
