"""
Error taxonomy for a batch run.

Only ``AllSourcesFailed`` is meant to escape a run; the others are raised and
caught locally so a single bad feed, document or artifact never aborts the batch.
"""
from __future__ import annotations

from typing import Dict


class TrendCycleError(Exception):
    """Base class for engine errors."""


class SourceUnavailable(TrendCycleError):
    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class AllSourcesFailed(TrendCycleError):
    def __init__(self, failures: Dict[str, str]) -> None:
        detail = "; ".join(f"{name}: {reason}" for name, reason in failures.items()) or "no sources configured"
        super().__init__(f"All feed sources failed ({detail})")
        self.failures = dict(failures)


class MalformedState(TrendCycleError):
    def __init__(self, path: object, reason: str) -> None:
        super().__init__(f"Unreadable document {path}: {reason}")
        self.path = path
        self.reason = reason


class ArtifactWriteFailure(TrendCycleError):
    def __init__(self, slug: str, reason: str) -> None:
        super().__init__(f"Artifact write failed for {slug}: {reason}")
        self.slug = slug
        self.reason = reason
