"""
Policy-driven suppression and lifecycle categorisation.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from trendcycle.models import Category

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Policy:
    """
    Injected vocabulary and thresholds.

    ``forbidden_terms`` suppress an item outright (title match only).
    ``sensitive_terms`` keep the item but file it under ARCHIVE.
    """

    forbidden_terms: FrozenSet[str] = field(default_factory=frozenset)
    sensitive_terms: FrozenSet[str] = field(default_factory=frozenset)
    hot_threshold: int = 10000
    new_minutes: int = 60
    heat_floor: int = 1
    case_sensitive: bool = True

    @classmethod
    def build(
        cls,
        forbidden_terms: Iterable[str] = (),
        sensitive_terms: Iterable[str] = (),
        **thresholds,
    ) -> "Policy":
        return cls(
            forbidden_terms=frozenset(t for t in forbidden_terms if isinstance(t, str) and t),
            sensitive_terms=frozenset(t for t in sensitive_terms if isinstance(t, str) and t),
            **thresholds,
        )


@dataclass(frozen=True)
class Classification:
    suppressed: bool
    category: Category


class Classifier:
    def __init__(self, policy: Policy) -> None:
        self.policy = policy
        self._forbidden = self._prepare(policy.forbidden_terms)
        self._sensitive = self._prepare(policy.sensitive_terms)

    def _prepare(self, terms: Iterable[str]) -> FrozenSet[str]:
        if self.policy.case_sensitive:
            return frozenset(terms)
        return frozenset(t.casefold() for t in terms)

    def _fold(self, text: str) -> str:
        return text if self.policy.case_sensitive else text.casefold()

    def is_suppressed(self, title: str) -> bool:
        folded = self._fold(title or "")
        return any(term in folded for term in self._forbidden)

    def is_sensitive(self, title: str, description: str = "") -> bool:
        folded = self._fold(f"{title or ''}\n{description or ''}")
        return any(term in folded for term in self._sensitive)

    def effective_heat(self, heat: Optional[object]) -> int:
        """Coerce a raw traffic metric, falling back to the policy floor."""
        try:
            value = int(heat)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            if heat not in (None, ""):
                logger.debug("Unusable heat metric %r; using floor %s", heat, self.policy.heat_floor)
            return self.policy.heat_floor
        if value <= 0:
            return self.policy.heat_floor
        return value

    def categorize(
        self,
        title: str,
        description: str = "",
        heat: Optional[object] = None,
        duration_minutes: int = 0,
    ) -> Category:
        if self.is_sensitive(title, description):
            return Category.ARCHIVE
        if self.effective_heat(heat) > self.policy.hot_threshold:
            return Category.HOT
        if duration_minutes < self.policy.new_minutes:
            return Category.NEW
        return Category.NOTABLE

    def classify(
        self,
        title: str,
        description: str = "",
        heat: Optional[object] = None,
        duration_minutes: int = 0,
    ) -> Classification:
        return Classification(
            suppressed=self.is_suppressed(title),
            category=self.categorize(title, description, heat, duration_minutes),
        )
