# pp_recalc/calculate.py
from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Context, Decimal
from itertools import product
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Tuple

from loguru import logger

from .config import RELAX_MOD, PlayRecord, RecalculationResult
from .engines import EngineRegistry
from .errors import ArtifactUnparseable, CalculationFailed, PipelineError
from .pipeline_types import (
    Branch,
    CalculationVariant,
    EngineInput,
    Ruleset,
    Strategy,
)

# ---------------------------------------------------------------------------
# Strategy matrix
# ---------------------------------------------------------------------------

_BRANCH_BUILDS: Dict[Branch, str] = {
    Branch.LIVE: "live",
    Branch.CHEATS: "main",
    Branch.NO_CHEATS: "main",
    Branch.LEGIT: "legit",
}

_CHEAT_BRANCHES = {Branch.CHEATS, Branch.LIVE}

# Adjustments each formula family understands; ScoreV2 takes none.
_RULESET_CHEAT_FIELDS: Dict[Ruleset, FrozenSet[str]] = {
    Ruleset.STANDARD: frozenset({"aim_value", "ar_value", "hidden_flag"}),
    Ruleset.RELAX: frozenset({"aim_value", "ar_value", "timewarp_value", "cs_flag"}),
    Ruleset.SCOREV2: frozenset(),
}


def _build_strategies() -> Dict[Tuple[Ruleset, Branch], Strategy]:
    table: Dict[Tuple[Ruleset, Branch], Strategy] = {}
    for ruleset, branch in product(Ruleset, Branch):
        table[(ruleset, branch)] = Strategy(
            name=f"{ruleset.name.lower()}/{branch.name.lower()}",
            build=_BRANCH_BUILDS[branch],
            cheat_fields=_RULESET_CHEAT_FIELDS[ruleset] if branch in _CHEAT_BRANCHES else frozenset(),
        )

    expected = len(Ruleset) * len(Branch)
    if len(table) != expected or len(set(table.values())) != expected:
        raise RuntimeError("calculation strategy matrix is incomplete or has duplicate cells")
    return table


STRATEGIES: Dict[Tuple[Ruleset, Branch], Strategy] = _build_strategies()


def strategy_for(variant: CalculationVariant) -> Strategy:
    return STRATEGIES[(variant.ruleset, variant.branch)]


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

# wide enough for any finite double
_ROUND_CTX = Context(prec=400)


def round_half_away(value: float, places: int = 2) -> float:
    """
    Round half away from zero on the decimal representation of `value`,
    so 123.455 -> 123.46 and -1.005 -> -1.01 (plain round() gives 123.45).
    Non-finite values pass through untouched.
    """
    if not math.isfinite(value):
        return value
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP, context=_ROUND_CTX))


def sanitize(value: float) -> float:
    return value if math.isfinite(value) else 0.0


# ---------------------------------------------------------------------------
# Engine input
# ---------------------------------------------------------------------------

def effective_mods(play: PlayRecord, variant: CalculationVariant) -> int:
    if variant.ruleset is Ruleset.SCOREV2 and variant.relax:
        return play.mods | RELAX_MOD
    return play.mods


_CHEAT_VALUES: Dict[str, Callable[[PlayRecord], Any]] = {
    "aim_value": lambda play: play.aim_value,
    "ar_value": lambda play: play.ar_value,
    # whole steps only, negatives clamp to 0
    "timewarp_value": lambda play: max(0, int(play.twval)),
    "hidden_flag": lambda play: play.hdr != 0,
    "cs_flag": lambda play: play.cs != 0,
}


def build_engine_input(play: PlayRecord, variant: CalculationVariant, strategy: Strategy) -> EngineInput:
    base = dict(
        mods=effective_mods(play, variant),
        combo=play.max_combo,
        accuracy=play.acc,
        n300=play.n300,
        n100=play.n100,
        n50=play.n50,
        misses=play.nmiss,
    )
    for field in strategy.cheat_fields:
        base[field] = _CHEAT_VALUES[field](play)
    return EngineInput(**base)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

def calculate(
    beatmap_path: Path,
    play: PlayRecord,
    variant: CalculationVariant,
    engines: EngineRegistry,
) -> RecalculationResult:
    """
    Recalculate one play under `variant`.

    Raw engine output is rounded to 2 places first, then any inf/NaN is
    replaced by 0.0; `difference` is taken against the rounded original pp.
    Only the ruleset is encoded in `version`, never the branch.
    """
    strategy = strategy_for(variant)
    engine = engines.get(strategy.build)
    beatmap_id = play.beatmap.id

    logger.debug("Calculating beatmap {} with strategy {}", beatmap_id, strategy.name)

    try:
        beatmap = engine.load_beatmap(beatmap_path)
    except PipelineError:
        raise
    except Exception as e:
        raise ArtifactUnparseable(f"Cannot load beatmap {beatmap_path}: {e}") from e

    params = build_engine_input(play, variant, strategy)
    try:
        output = engine.calculate(beatmap, variant.ruleset, params)
    except PipelineError:
        raise
    except Exception as e:
        raise CalculationFailed(
            f"Engine '{strategy.build}' failed on beatmap {beatmap_id} ({strategy.name}): {e}"
        ) from e

    original_pp = round_half_away(play.pp, 2)
    pp = round_half_away(float(output.pp), 2)
    stars = round_half_away(float(output.stars), 2)

    if not math.isfinite(pp):
        logger.warning("Calculated pp is infinite or NaN for beatmap {}", beatmap_id)
        pp = sanitize(pp)
    if not math.isfinite(stars):
        logger.warning("Calculated stars is infinite or NaN for beatmap {}", beatmap_id)
        stars = sanitize(stars)

    difference = pp - original_pp

    logger.debug(
        "Beatmap {}: original={} recalculated={} difference={} stars={}",
        beatmap_id, original_pp, pp, difference, stars,
    )

    return RecalculationResult(
        beatmap_id=beatmap_id,
        original_pp=original_pp,
        recalculated_pp=pp,
        difference=difference,
        stars=stars,
        mods=params.mods,
        version=int(variant.ruleset),
    )
