from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, Field


# ---------------------------
# Paths
# ---------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DATA_DIR = PROJECT_ROOT / ".data"
BEATMAP_CACHE_DIR = Path(os.getenv("BEATMAP_CACHE_DIR", str(DATA_DIR / "beatmaps")))
BEATMAP_FILE_EXT = "osu"


# ---------------------------
# Upstream services
# ---------------------------

RANKING_API_BASE = os.getenv("RANKING_API_BASE", "https://api.refx.online/v1").rstrip("/")
BEATMAP_ORIGIN = os.getenv("BEATMAP_ORIGIN", "https://osu.ppy.sh/osu").rstrip("/")

LEADERBOARD_LIMIT = 10
BEST_SCORES_LIMIT = 10
BEST_SCORES_SCOPE = "best"


# ---------------------------
# HTTP hardening
# ---------------------------

HTTP_CONNECT_TIMEOUT = 3.0
HTTP_READ_TIMEOUT = 15.0
HTTP_MAX_ARTIFACT_BYTES = 20_000_000  # 20 MB cap per beatmap

HTTP_USER_AGENT = "pp-recalc/1.0"


# ---------------------------
# Caching & fan-out
# ---------------------------

DEFAULT_RESPONSE_CACHE_TTL = 60.0  # seconds
RESPONSE_CACHE_TTL = float(os.getenv("RESPONSE_CACHE_TTL", str(DEFAULT_RESPONSE_CACHE_TTL)))

DEFAULT_FETCH_MAX_WORKERS = 10
FETCH_MAX_WORKERS = max(1, int(os.getenv("FETCH_MAX_WORKERS", str(DEFAULT_FETCH_MAX_WORKERS))))


# ---------------------------
# Request parameter ranges
# ---------------------------

MODE_MIN = 0
MODE_MAX = 8

VERSION_MIN = 0
VERSION_MAX = 2  # 0 = standard, 1 = relax, 2 = scorev2

BRANCH_MIN = 0
BRANCH_MAX = 3   # 0 = live, 1 = with cheat values, 2 = without, 3 = legit
DEFAULT_BRANCH = 2

# Bits in the stable mod bitset
RELAX_MOD = 1 << 7
SCOREV2_MOD = 1 << 29


# ---------------------------
# Scoring engine builds
# ---------------------------

DEFAULT_ENGINE = "pp_recalc.engines:RulesetEngine"

ENGINE_BUILD_NAMES: List[str] = ["main", "legit", "live"]

ENGINE_BUILDS: Dict[str, str] = {
    name: os.getenv(f"ENGINE_BUILD_{name.upper()}", DEFAULT_ENGINE)
    for name in ENGINE_BUILD_NAMES
}


# ---------------------------
# Server
# ---------------------------

SERVER_HOST = os.getenv("SERVER_HOST", "127.0.0.1")
SERVER_PORT = int(os.getenv("SERVER_PORT", "8670"))


# ---------------------------
# Logging / observability
# ---------------------------

LOG_DIR = PROJECT_ROOT / "logs"
LOG_DIR.mkdir(exist_ok=True)
LOG_FILE = LOG_DIR / "pp_recalc.log"
LOG_ROTATION = "10 MB"


# ---------------------------
# Pydantic models shared around the app
# ---------------------------

class LeaderboardEntry(BaseModel):
    """One ranked player as returned by the leaderboard endpoint."""

    player_id: int = Field(ge=0)
    name: str
    pp: float


class LeaderboardResponse(BaseModel):
    status: str
    leaderboard: List[LeaderboardEntry] = Field(default_factory=list)


class BeatmapRef(BaseModel):
    id: int = Field(ge=0)
    md5: str = ""


class PlayRecord(BaseModel):
    """
    A single best play as served by the ranking API.

    Hit counts follow the stable naming (n300/n100/n50/nmiss). The trailing
    fields are anti-cheat scalars; servers that don't track them omit them.
    """

    score: int = 0
    pp: float
    acc: float
    max_combo: int = Field(ge=0)
    mods: int = Field(ge=0)
    n300: int = Field(default=0, ge=0)
    n100: int = Field(default=0, ge=0)
    n50: int = Field(default=0, ge=0)
    nmiss: int = Field(default=0, ge=0)
    beatmap: BeatmapRef

    aim_value: int = 0
    ar_value: float = 0.0
    twval: float = 0.0
    hdr: int = 0
    cs: int = 0


class ScoresResponse(BaseModel):
    status: str
    scores: List[PlayRecord] = Field(default_factory=list)


class RecalculationResult(BaseModel):
    """
    Response item for GET /calculate_pp.
    `mods` is the effective bitset the engine was called with.
    """

    beatmap_id: int
    original_pp: float
    recalculated_pp: float
    difference: float
    stars: float
    mods: int
    version: int


class HealthResponse(BaseModel):
    """
    Response body for GET /health.
    """

    status: str
