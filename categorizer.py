"""Keyword-based transaction categorization.

Suggests one of the user's own categories for a free-text transaction
description. The pipeline is:

  1. look up the (label -> keywords) table for the transaction kind,
  2. score every label by how many of its keywords occur in the
     lowercased description,
  3. reconcile the best label with the names of the user's categories,
  4. offer up to three other user categories as alternatives.

Keywords are matched as plain substrings, so ``gas`` also matches inside
``Las Vegas``. Every call is independent and reads only its arguments and
the immutable keyword table, so a single ``Categorizer`` can be shared
between requests.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Dict, Hashable, Iterable, List, NamedTuple, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = 'Other'


class ValidationError(ValueError):
    """Raised when the caller supplies input the engine cannot work with."""


class TransactionKind(str, enum.Enum):
    INCOME = 'INCOME'
    EXPENSE = 'EXPENSE'


KIND_NAMES = [k.value for k in TransactionKind]


def parse_kind(value) -> TransactionKind:
    """Accept a ``TransactionKind`` or its name in any case."""
    if isinstance(value, TransactionKind):
        return value
    if isinstance(value, str):
        try:
            return TransactionKind(value.strip().upper())
        except ValueError:
            pass
    raise ValidationError(f"Transaction type must be one of {KIND_NAMES}")


class UserCategory(NamedTuple):
    id: Optional[Hashable]
    name: str
    kind: Optional[TransactionKind] = None


class ScoredCategory(NamedTuple):
    label: str
    confidence: float


class CategorizationResult(NamedTuple):
    category: str
    confidence: float
    alternatives: List[str]

    @property
    def confidence_label(self) -> str:
        if self.confidence >= 0.9:
            return 'Very High'
        if self.confidence >= 0.7:
            return 'High'
        if self.confidence >= 0.5:
            return 'Medium'
        return 'Low'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'confidence': self.confidence,
            'confidence_label': self.confidence_label,
            'alternatives': list(self.alternatives),
        }


def count_matches(description: str, keywords: Iterable[str]) -> int:
    """Number of distinct keywords contained in ``description``.

    A keyword occurring several times still counts once.
    """
    text = description.lower()
    return sum(1 for kw in set(keywords) if kw in text)


def select_alternatives(candidates: Sequence[UserCategory], chosen: str, limit: int = 3) -> List[str]:
    """Other candidate names, in the caller's order, at most ``limit``."""
    out: List[str] = []
    for cat in candidates:
        if len(out) >= limit:
            break
        if cat.name != chosen and cat.name not in out:
            out.append(cat.name)
    return out


class Categorizer:
    def __init__(self, dictionary, base_confidence: float = 0.3,
                 confidence_step: float = 0.15, max_confidence: float = 0.95,
                 max_alternatives: int = 3):
        if not 0 <= base_confidence <= max_confidence <= 1:
            raise ValueError("Confidence thresholds must satisfy 0 <= base <= max <= 1")
        self.dictionary = dictionary
        self.base_confidence = base_confidence
        self.confidence_step = confidence_step
        self.max_confidence = max_confidence
        self.max_alternatives = max_alternatives

    def confidence_for(self, match_count: int) -> float:
        # rounded so 0.3 + 0.15 reports as 0.45
        return round(min(self.base_confidence + match_count * self.confidence_step, self.max_confidence), 4)

    def score(self, description: str, kind) -> List[ScoredCategory]:
        """Labels with at least one keyword hit, best first.

        ``sorted`` is stable, so labels with equal confidence stay in
        dictionary order.
        """
        scored = []
        for label, keywords in self.dictionary.lookup(kind):
            hits = count_matches(description, keywords)
            if hits > 0:
                scored.append(ScoredCategory(label, self.confidence_for(hits)))
        return sorted(scored, key=lambda s: s.confidence, reverse=True)

    def reconcile(self, ranked: Sequence[ScoredCategory],
                  candidates: Sequence[UserCategory]) -> Tuple[str, float]:
        """Map the best dictionary label onto one of the user's categories."""
        best = ranked[0] if ranked else ScoredCategory(FALLBACK_CATEGORY, self.base_confidence)
        names = {c.name for c in candidates}
        if best.label in names:
            return best.label, best.confidence
        for match in ranked:
            if match.label in names:
                return match.label, match.confidence
        if candidates:
            return candidates[0].name, self.base_confidence
        return FALLBACK_CATEGORY, self.base_confidence

    def categorize(self, description: str, kind,
                   candidates: Sequence[UserCategory]) -> CategorizationResult:
        kind = parse_kind(kind)
        if not isinstance(description, str) or not description.strip():
            raise ValidationError("Description is required")
        candidates = list(candidates)
        if not candidates:
            raise ValidationError(f"No categories found for transaction type {kind.value}")
        mismatched = [c.name for c in candidates if c.kind is not None and parse_kind(c.kind) != kind]
        if mismatched:
            raise ValidationError(
                f"Categories {mismatched} are not {kind.value} categories")

        ranked = self.score(description, kind)
        category, confidence = self.reconcile(ranked, candidates)
        result = CategorizationResult(
            category=category,
            confidence=confidence,
            alternatives=select_alternatives(candidates, category, self.max_alternatives),
        )
        logger.debug("categorized %r as %s (%.2f, %d label hits)",
                     description, category, confidence, len(ranked))
        return result
