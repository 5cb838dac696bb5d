"""Typed containers shared across pipeline modules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import FrozenSet, Optional

from .errors import InvalidParameter


class Ruleset(IntEnum):
    """Scoring formula family. The integer value is the `version` code."""

    STANDARD = 0
    RELAX = 1
    SCOREV2 = 2


class Branch(IntEnum):
    """Engine build / cheat-adjustment profile, keyed by the `branch` code."""

    LIVE = 0
    CHEATS = 1
    NO_CHEATS = 2
    LEGIT = 3


@dataclass(frozen=True)
class CalculationVariant:
    ruleset: Ruleset
    branch: Branch
    relax: bool = False

    @classmethod
    def from_codes(cls, version: int, branch: int, relax: bool = False) -> "CalculationVariant":
        try:
            ruleset = Ruleset(version)
        except ValueError as e:
            raise InvalidParameter(
                f"Invalid version {version}. Must be between {int(min(Ruleset))} and {int(max(Ruleset))}."
            ) from e
        try:
            br = Branch(branch)
        except ValueError as e:
            raise InvalidParameter(
                f"Invalid branch {branch}. Must be between {int(min(Branch))} and {int(max(Branch))}."
            ) from e
        return cls(ruleset=ruleset, branch=br, relax=bool(relax))


@dataclass(frozen=True)
class Strategy:
    """One cell of the (ruleset, branch) matrix."""

    name: str
    build: str
    cheat_fields: FrozenSet[str] = frozenset()

    @property
    def forward_cheats(self) -> bool:
        return bool(self.cheat_fields)


@dataclass(frozen=True)
class EngineInput:
    """
    Everything an engine needs for a single play.

    The cheat fields stay None unless the strategy forwards them; engines
    must treat None as "not provided".
    """

    mods: int
    combo: int
    accuracy: float
    n300: int
    n100: int
    n50: int
    misses: int

    aim_value: Optional[int] = None
    ar_value: Optional[float] = None
    timewarp_value: Optional[int] = None
    hidden_flag: Optional[bool] = None
    cs_flag: Optional[bool] = None


@dataclass(frozen=True)
class EngineOutput:
    pp: float
    stars: float
