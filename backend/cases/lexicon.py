"""
Keyword lexicons used by the scoring engine.

A lexicon is three tiers of terms.  Each distinct term found in a case
description (case-insensitive, whole word) adds the tier's points.
The active lexicon is selected with the ``CASE_SCORING_LEXICON``
setting; deployments in another language provide their own instance.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field


@dataclass(frozen=True)
class KeywordLexicon:
    severe: tuple[str, ...]
    moderate: tuple[str, ...]
    mild: tuple[str, ...]
    severe_points: int = 10
    moderate_points: int = 5
    mild_points: int = 2
    _patterns: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def tiers(self) -> list[tuple[tuple[str, ...], int]]:
        return [
            (self.severe, self.severe_points),
            (self.moderate, self.moderate_points),
            (self.mild, self.mild_points),
        ]

    def pattern(self, term: str) -> re.Pattern:
        compiled = self._patterns.get(term)
        if compiled is None:
            compiled = re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)
            self._patterns[term] = compiled
        return compiled


FRENCH_LEXICON = KeywordLexicon(
    severe=("suicide", "viol", "agression", "arme", "menace de mort", "étrangler"),
    moderate=("saignement", "fracture", "hospital", "abus", "harcèlement", "peur"),
    mild=("fugue", "crise", "angoisse", "insomnie"),
)

ENGLISH_LEXICON = KeywordLexicon(
    severe=("suicide", "rape", "assault", "weapon", "death threat", "strangle"),
    moderate=("bleeding", "fracture", "hospital", "abuse", "harassment", "fear"),
    mild=("runaway", "crisis", "anxiety", "insomnia"),
)
