from __future__ import annotations

"""
Scoring engine boundary.

An engine turns a beatmap file plus an EngineInput into (pp, stars). The
numerical method is entirely the engine's business. Builds ("main",
"legit", "live") are looked up by name in an EngineRegistry, so a fork of
the calculator can be dropped in through config.ENGINE_BUILDS without
touching the dispatcher.

The default build, RulesetEngine, picks a calculator per ruleset:
current stable pp (rosu-pp-py) for standard, and the 2019-era akatsuki
calculator for relax and ScoreV2.
"""

import importlib
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

import akatsuki_pp_py as akatsuki
import rosu_pp_py as rosu
from loguru import logger

from .beatmap_format import beatmap_problem
from .config import RELAX_MOD, SCOREV2_MOD
from .errors import ArtifactUnparseable, PipelineError
from .pipeline_types import EngineInput, EngineOutput, Ruleset


@runtime_checkable
class ScoringEngine(Protocol):
    """Protocol every engine build implements."""

    def load_beatmap(self, path: Path) -> Any:
        """Parse the beatmap at `path`; raise ArtifactUnparseable on bad content."""

    def calculate(self, beatmap: Any, ruleset: Ruleset, params: EngineInput) -> EngineOutput:
        """Compute performance and star rating for one play."""


def read_beatmap(path: Path) -> bytes:
    """Read and structurally check a beatmap file."""
    try:
        content = Path(path).read_bytes()
    except OSError as e:
        raise ArtifactUnparseable(f"Cannot read beatmap {path}: {e}") from e
    problem = beatmap_problem(content)
    if problem is not None:
        raise ArtifactUnparseable(f"Cannot parse beatmap {path}: {problem}")
    return content


class RosuEngine:
    """
    rosu-pp-py adapter, computing current stable (non-lazer) performance.

    rosu-pp has no anti-cheat inputs, so the cheat fields of EngineInput are
    ignored here, and the ruleset is not consulted.
    """

    def parse(self, content: bytes) -> rosu.Beatmap:
        try:
            return rosu.Beatmap(bytes=content)
        except Exception as e:
            raise ArtifactUnparseable(f"rosu-pp rejected beatmap: {e}") from e

    def load_beatmap(self, path: Path) -> rosu.Beatmap:
        return self.parse(read_beatmap(path))

    def calculate(self, beatmap: rosu.Beatmap, ruleset: Ruleset, params: EngineInput) -> EngineOutput:
        perf = rosu.Performance(
            mods=params.mods,
            combo=params.combo,
            accuracy=params.accuracy,
            n300=params.n300,
            n100=params.n100,
            n50=params.n50,
            misses=params.misses,
            lazer=False,
        )
        attrs = perf.calculate(beatmap)
        return EngineOutput(pp=float(attrs.pp), stars=float(attrs.difficulty.stars))


class AkatsukiEngine:
    """
    akatsuki-pp-py adapter.

    The relax ruleset is scored with the relax bit set, which switches the
    calculator to its 2019 relax formula; ScoreV2 gets the ScoreV2 bit.
    Cheat fields are ignored.
    """

    _RULESET_MODS: Dict[Ruleset, int] = {
        Ruleset.STANDARD: 0,
        Ruleset.RELAX: RELAX_MOD,
        Ruleset.SCOREV2: SCOREV2_MOD,
    }

    def parse(self, content: bytes) -> akatsuki.Beatmap:
        try:
            return akatsuki.Beatmap(bytes=content)
        except Exception as e:
            raise ArtifactUnparseable(f"akatsuki-pp rejected beatmap: {e}") from e

    def load_beatmap(self, path: Path) -> akatsuki.Beatmap:
        return self.parse(read_beatmap(path))

    def calculate(self, beatmap: akatsuki.Beatmap, ruleset: Ruleset, params: EngineInput) -> EngineOutput:
        calc = akatsuki.Calculator(
            mods=params.mods | self._RULESET_MODS[ruleset],
            acc=params.accuracy,
            n300=params.n300,
            n100=params.n100,
            n50=params.n50,
            n_misses=params.misses,
            combo=params.combo,
        )
        attrs = calc.performance(beatmap)
        return EngineOutput(pp=float(attrs.pp), stars=float(attrs.difficulty.stars))


class RulesetEngine:
    """
    Default build: validates the file once, then hands it to the calculator
    registered for the play's ruleset.
    """

    def __init__(self, by_ruleset: Optional[Mapping[Ruleset, Any]] = None) -> None:
        if by_ruleset is None:
            relax_capable = AkatsukiEngine()
            by_ruleset = {
                Ruleset.STANDARD: RosuEngine(),
                Ruleset.RELAX: relax_capable,
                Ruleset.SCOREV2: relax_capable,
            }
        missing = set(Ruleset) - set(by_ruleset)
        if missing:
            raise ValueError(f"No calculator for rulesets {sorted(r.name for r in missing)}")
        self._by_ruleset = dict(by_ruleset)

    def load_beatmap(self, path: Path) -> bytes:
        return read_beatmap(path)

    def calculate(self, beatmap: bytes, ruleset: Ruleset, params: EngineInput) -> EngineOutput:
        engine = self._by_ruleset[ruleset]
        return engine.calculate(engine.parse(beatmap), ruleset, params)

def _resolve(import_path: str) -> Any:
    module_name, _, attr = import_path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Engine path must look like 'module:attr', got {import_path!r}")
    obj = getattr(importlib.import_module(module_name), attr)
    return obj() if isinstance(obj, type) else obj


class EngineRegistry:
    def __init__(self, builds: Mapping[str, ScoringEngine]) -> None:
        self._builds: Dict[str, ScoringEngine] = dict(builds)

    @classmethod
    def from_import_paths(cls, paths: Mapping[str, str]) -> "EngineRegistry":
        """
        Build a registry from {build_name: "module:attr"}. Builds sharing an
        import path share one engine instance.
        """
        loaded: Dict[str, ScoringEngine] = {}
        builds: Dict[str, ScoringEngine] = {}
        for name, path in paths.items():
            if path not in loaded:
                engine = _resolve(path)
                if not isinstance(engine, ScoringEngine):
                    raise TypeError(f"{path} does not implement load_beatmap/calculate")
                loaded[path] = engine
                logger.info("Loaded scoring engine {} for build '{}'", path, name)
            builds[name] = loaded[path]
        return cls(builds)

    def get(self, build: str) -> ScoringEngine:
        try:
            return self._builds[build]
        except KeyError:
            raise PipelineError(f"No scoring engine registered for build '{build}'") from None

    def names(self) -> List[str]:
        return sorted(self._builds)
