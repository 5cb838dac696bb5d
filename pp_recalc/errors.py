"""Failure kinds raised by the recalculation pipeline."""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for every failure that aborts a recalculation run."""


class UpstreamUnavailable(PipelineError):
    """Transport failure or error status from the ranking API or beatmap origin."""


class UpstreamMalformed(PipelineError):
    """Upstream answered, but the body doesn't match the expected schema."""


class FilesystemFailure(PipelineError):
    """Beatmap cache directory could not be read or written."""


class ArtifactUnparseable(PipelineError):
    """Beatmap bytes could not be loaded by the selected engine."""


class CalculationFailed(PipelineError):
    """Engine raised while computing performance for a loaded beatmap."""


class InvalidParameter(PipelineError, ValueError):
    """Caller-supplied mode, version or branch is out of range."""
