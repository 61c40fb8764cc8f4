# assess_core/heuristics.py
from __future__ import annotations
import re
from typing import Sequence, Tuple

from .config import ScoringSettings

_WORD_RX = re.compile(r"[a-z0-9]+")


def subjective_ratio(text: str, settings: ScoringSettings | None = None) -> float:
    """Length-tiered credit for a free-text answer, as a fraction of marks.

    Never reaches 1.0: length is a crude proxy, the top tier is capped.
    """
    s = settings or ScoringSettings()
    n = len((text or "").strip())
    if n < s.subjective_min_chars:
        return 0.0
    for limit, ratio in s.subjective_tiers:
        if n < limit:
            return ratio
    return s.subjective_cap_ratio


def keyword_coverage(text: str, keywords: Sequence[str]) -> Tuple[int, int]:
    """(expected keywords mentioned, expected keywords declared)."""
    if not keywords:
        return 0, 0
    words = set(_WORD_RX.findall((text or "").lower()))
    low = (text or "").lower()
    hit = 0
    for kw in keywords:
        k = kw.strip().lower()
        if not k:
            continue
        # multi-word keywords match as phrases
        if (" " in k and k in low) or k in words:
            hit += 1
    return hit, len([k for k in keywords if k.strip()])
