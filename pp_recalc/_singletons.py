# pp_recalc/_singletons.py
from functools import lru_cache

from . import config
from .artifact_store import ArtifactStore
from .engines import EngineRegistry
from .ranking_client import RankingClient
from .response_cache import TTLResponseCache


@lru_cache(maxsize=1)
def get_response_cache() -> TTLResponseCache:
    return TTLResponseCache(config.RESPONSE_CACHE_TTL)


@lru_cache(maxsize=1)
def get_ranking_client() -> RankingClient:
    return RankingClient(config.RANKING_API_BASE, get_response_cache())


@lru_cache(maxsize=1)
def get_artifact_store() -> ArtifactStore:
    return ArtifactStore(config.BEATMAP_CACHE_DIR, config.BEATMAP_ORIGIN)


@lru_cache(maxsize=1)
def get_engines() -> EngineRegistry:
    return EngineRegistry.from_import_paths(config.ENGINE_BUILDS)
