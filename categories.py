import json
import os
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from categorizer import KIND_NAMES, parse_kind

# Default label-to-keywords mapping per transaction kind. Label order matters:
# when two labels score the same, the one listed first wins.
DEFAULT_CATEGORY_KEYWORDS: Dict[str, Dict[str, List[str]]] = {
    'EXPENSE': {
        'Food & Dining': [
            'food', 'lunch', 'dinner', 'breakfast', 'coffee', 'restaurant', 'cafe',
            'pizza', 'burger', 'meal', 'snack', 'drink', 'beverage', 'starbucks',
            'mcdonalds', 'kfc', 'subway', 'dominos', 'chipotle', 'taco', 'sushi',
        ],
        'Transportation': [
            'uber', 'lyft', 'taxi', 'gas', 'fuel', 'parking', 'toll', 'bus',
            'train', 'subway', 'metro', 'car', 'vehicle', 'maintenance', 'repair',
        ],
        'Shopping': [
            'amazon', 'walmart', 'target', 'mall', 'store', 'clothes', 'shoes',
            'electronics', 'books', 'gifts', 'purchase', 'buy',
        ],
        'Bills': [
            'electricity', 'water', 'gas', 'internet', 'phone', 'cable', 'rent',
            'mortgage', 'insurance', 'utility', 'bill', 'payment',
        ],
        'Entertainment': [
            'movie', 'theater', 'concert', 'show', 'game', 'netflix', 'spotify',
            'hulu', 'disney', 'amazon prime', 'subscription',
        ],
        'Healthcare': [
            'doctor', 'hospital', 'pharmacy', 'medicine', 'dental', 'vision',
            'medical', 'health', 'clinic', 'appointment',
        ],
    },
    'INCOME': {
        'Salary': ['salary', 'paycheck', 'wage', 'job', 'work'],
        'Freelance': ['freelance', 'contract', 'project', 'consulting'],
        'Investment': ['investment', 'dividend', 'stock', 'bond', 'interest'],
        'Business': ['business', 'company', 'startup', 'entrepreneur'],
        'Gift': ['gift', 'present', 'donation', 'charity'],
        'Refund': ['refund', 'return', 'cashback', 'rebate'],
    },
}

KeywordSet = Tuple[str, Tuple[str, ...]]


def _freeze_keywords(label: str, keywords: Iterable[str]) -> Tuple[str, ...]:
    if not isinstance(keywords, (list, tuple)):
        raise ValueError(f"Keywords for {label!r} must be a list of strings")
    seen = []
    for kw in keywords:
        if not isinstance(kw, str):
            raise ValueError(f"Keywords for {label!r} must be a list of strings")
        kw = kw.strip().lower()
        if kw and kw not in seen:
            seen.append(kw)
    return tuple(seen)


class KeywordDictionary:
    """Read-only table of label -> trigger substrings, one section per kind.

    Built once (usually at process start) and shared by every
    categorization call. Nothing on this object can be changed after
    construction.
    """

    def __init__(self, tables: Mapping[str, Mapping[str, Iterable[str]]]):
        frozen = {}
        for kind_name, labels in tables.items():
            kind = parse_kind(kind_name)
            if not isinstance(labels, Mapping):
                raise ValueError(f"{kind.value} section must map labels to keyword lists")
            entries = tuple(
                (str(label), _freeze_keywords(label, keywords))
                for label, keywords in labels.items()
            )
            entries = tuple(e for e in entries if e[1])
            if not entries:
                raise ValueError(f"No keywords configured for {kind.value} categories")
            frozen[kind] = entries
        missing = [name for name in KIND_NAMES if parse_kind(name) not in frozen]
        if missing:
            raise ValueError(f"Keyword dictionary is missing sections: {missing}")
        self._tables = frozen

    def lookup(self, kind) -> Tuple[KeywordSet, ...]:
        """Return the ordered (label, keywords) entries for ``kind``."""
        return self._tables[parse_kind(kind)]

    def labels(self, kind) -> List[str]:
        return [label for label, _ in self.lookup(kind)]

    def to_dict(self) -> Dict[str, Dict[str, List[str]]]:
        return {
            kind.value: {label: list(keywords) for label, keywords in entries}
            for kind, entries in self._tables.items()
        }

    def __repr__(self):
        sizes = ', '.join(f"{k.value}={len(v)}" for k, v in self._tables.items())
        return f"<KeywordDictionary {sizes}>"


def load_keyword_dictionary(path: Optional[str] = None) -> KeywordDictionary:
    """Build the keyword dictionary from ``path`` or the built-in defaults.

    The file uses the same shape as ``DEFAULT_CATEGORY_KEYWORDS``. A missing
    file falls back to the defaults; a malformed one raises.
    """
    path = path or os.environ.get('CATEGORY_KEYWORDS_FILE')
    if path:
        try:
            with open(path, 'r', encoding='utf-8') as fh:
                return KeywordDictionary(json.load(fh))
        except FileNotFoundError:
            pass
    return KeywordDictionary(DEFAULT_CATEGORY_KEYWORDS)
