"""
Question labels for contributing factors.

Resolution order:
1. Caller-supplied catalog (question id -> question text)
2. Catalog question whose text contains the keyword of a
   legacy question id
3. Legacy label for the exact question id
4. Legacy label whose id words (camelCase or snake_case) all
   appear among the question id words
5. The raw question id
"""

import re
from typing import FrozenSet, Mapping, Optional, Tuple

from .weights import LegacyWeightTable


LABEL_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("family", "familyGlaucoma"),
    ("ophthalmic", "ocularSteroid"),
    ("ocular", "ocularSteroid"),
    ("intravitreal", "intravitreal"),
    ("systemic", "systemicSteroid"),
    ("iop", "iopBaseline"),
    ("asymmetry", "verticalAsymmetry"),
    ("ratio", "verticalRatio"),
    ("race", "race"),
)

_WORD = re.compile(r"[A-Z]?[a-z]+|[A-Z]+(?![a-z])|\d+")


def id_words(question_id: str) -> FrozenSet[str]:
    """Lower-cased words of a camelCase or snake_case id."""
    return frozenset(word.lower() for word in _WORD.findall(question_id))


class QuestionLabelResolver:
    """Maps question ids onto human-readable labels."""

    def __init__(
        self,
        catalog: Optional[Mapping[str, str]] = None,
        legacy: Optional[LegacyWeightTable] = None,
        keywords: Tuple[Tuple[str, str], ...] = LABEL_KEYWORDS,
    ) -> None:
        self._catalog = dict(catalog or {})
        self._legacy = legacy or LegacyWeightTable()
        self._keywords = keywords

    def label_for(self, question_id: str) -> str:
        label = self._catalog.get(question_id)
        if label:
            return label

        label = self._catalog_text_for_legacy_id(question_id)
        if label:
            return label

        label = self._legacy.label_for(question_id)
        if label:
            return label

        words = id_words(question_id)
        for legacy_id in self._legacy.question_ids():
            if id_words(legacy_id) <= words:
                return self._legacy.label_for(legacy_id) or question_id

        return question_id

    def _catalog_text_for_legacy_id(self, question_id: str) -> Optional[str]:
        keywords = [keyword for keyword, legacy_id in self._keywords if legacy_id == question_id]
        if not keywords:
            return None
        for text in self._catalog.values():
            lowered = text.lower()
            if any(keyword in lowered for keyword in keywords):
                return text
        return None
