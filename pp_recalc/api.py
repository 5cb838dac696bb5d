from __future__ import annotations

"""
FastAPI application for the leaderboard PP recalculator.

- GET /calculate_pp recalculates the top-10 players' best plays
- Parameter range errors are 400s and never start a pipeline run
- Any pipeline failure is a generic 500; details only go to the log
"""

from typing import Dict, List

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .config import (
    DEFAULT_BRANCH,
    LOG_FILE,
    LOG_ROTATION,
    SERVER_HOST,
    SERVER_PORT,
    HealthResponse,
    RecalculationResult,
)
from .errors import InvalidParameter
from .pipeline import parse_variant, run_recalculation, validate_mode
from ._singletons import (
    get_artifact_store,
    get_engines,
    get_ranking_client,
)


# -----------------------
# FastAPI app + startup
# -----------------------

app = FastAPI()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_log_sink_id = None


@app.on_event("startup")
def startup_event() -> None:
    global _log_sink_id
    if _log_sink_id is None:
        _log_sink_id = logger.add(LOG_FILE, rotation=LOG_ROTATION, level="INFO")
    logger.info("Starting app warmup...")
    store = get_artifact_store()
    store.ensure_root()
    logger.info("Beatmap cache ready at {}", store.root)
    try:
        engines = get_engines()
        logger.info("Scoring engine builds: {}", ", ".join(engines.names()))
    except Exception as e:
        logger.warning("Warmup partial failure: {}", e)
    logger.info("Warmup complete.")


@app.on_event("shutdown")
def shutdown_event() -> None:
    get_ranking_client().close()
    get_artifact_store().close()


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="healthy")


@app.get("/calculate_pp", response_model=Dict[str, List[RecalculationResult]])
def calculate_pp(
    mode: int = Query(0),
    version: int = Query(0),
    rx: bool = Query(False),
    branch: int = Query(DEFAULT_BRANCH),
):
    try:
        validate_mode(mode)
        variant = parse_variant(version, branch, rx)
    except InvalidParameter as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        return run_recalculation(
            mode,
            variant,
            client=get_ranking_client(),
            store=get_artifact_store(),
            engines=get_engines(),
        )
    except InvalidParameter as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Error: {}", e)
        raise HTTPException(status_code=500, detail="Failed to calculate PP")


# -----------------------
# CLI convenience
# -----------------------

def main() -> None:
    import uvicorn

    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)


if __name__ == "__main__":
    main()
