"""Cohort similarity checks for free-text and code answers.

Both comparators blend a set-overlap (Jaccard) percentage with a
character-level Levenshtein percentage over normalized content. Comparisons are
symmetric and only run against peers of the same assessment.
"""
from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence

from rapidfuzz.distance import Levenshtein

from .config import SimilaritySettings
from .types import Question, SimilarityMatch, SimilarityResult, Submission
from .utils import round_half_up

log = logging.getLogger(__name__)

_PUNCT_RX = re.compile(r"[^\w\s]")
_WS_RX = re.compile(r"\s+")
_LINE_COMMENT_RX = re.compile(r"(//|#).*$", re.M)
_BLOCK_COMMENT_RX = re.compile(r"/\*.*?\*/", re.S)
_QUOTE_RX = re.compile(r"['\"]")
_DIGITS_RX = re.compile(r"\d+")


def normalize_text(text: str) -> str:
    t = _PUNCT_RX.sub(" ", (text or "").lower())
    return _WS_RX.sub(" ", t).strip()


def normalize_code(code: str) -> str:
    c = _BLOCK_COMMENT_RX.sub("", code or "")
    c = _LINE_COMMENT_RX.sub("", c)
    c = _WS_RX.sub(" ", c)
    c = _QUOTE_RX.sub('"', c)
    c = _DIGITS_RX.sub("N", c)
    return c.strip()


def levenshtein(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


@dataclass(frozen=True)
class _Prepared:
    norm: str
    digest: str
    tokens: FrozenSet[str]


def _prepare(norm: str, min_token_len: int) -> _Prepared:
    return _Prepared(
        norm=norm,
        digest=hashlib.sha1(norm.encode("utf-8")).hexdigest(),
        tokens=frozenset(t for t in norm.split() if len(t) >= min_token_len),
    )


def _prepare_text(text: str) -> _Prepared:
    # words of three or more characters
    return _prepare(normalize_text(text), 3)


def _prepare_code(code: str) -> _Prepared:
    return _prepare(normalize_code(code), 2)


def _blend(a: _Prepared, b: _Prepared, set_weight: float) -> int:
    if a.digest == b.digest and a.norm == b.norm:
        return 100
    union = a.tokens | b.tokens
    overlap = (len(a.tokens & b.tokens) / len(union) * 100) if union else 0.0
    max_len = max(len(a.norm), len(b.norm))
    if max_len == 0:
        return 0
    char_sim = (max_len - levenshtein(a.norm, b.norm)) / max_len * 100
    return round_half_up(overlap * set_weight + char_sim * (1 - set_weight))


def text_similarity(a: str, b: str, word_weight: float = 0.6) -> int:
    """0..100 similarity of two free-text answers."""
    if not a or not b:
        return 0
    return _blend(_prepare_text(a), _prepare_text(b), word_weight)


def code_similarity(a: str, b: str, token_weight: float = 0.5) -> int:
    """0..100 similarity of two code answers after comment/literal normalization."""
    if not a or not b:
        return 0
    return _blend(_prepare_code(a), _prepare_code(b), token_weight)


def recent_peers(submission: Submission, cohort: Sequence[Submission], max_peers: int) -> List[Submission]:
    """Same-assessment peers, excluding ``submission`` itself, most recent first."""
    peers = [p for p in cohort if p.id != submission.id and p.assessment_id == submission.assessment_id]
    peers.sort(key=lambda p: p.submitted_at, reverse=True)
    if max_peers > 0 and len(peers) > max_peers:
        log.debug("similarity cohort for %s bounded to %d of %d peers", submission.id, max_peers, len(peers))
        peers = peers[:max_peers]
    return peers


def _answer_text(sub: Submission, question_id: str) -> str:
    ans = sub.answers.get(question_id)
    return (getattr(ans.response, "text", "") or "") if ans else ""


def _answer_code(sub: Submission, question_id: str) -> str:
    ans = sub.answers.get(question_id)
    return (getattr(ans.response, "code", "") or "") if ans else ""


def _compare(
    submission: Submission,
    question_id: str,
    cohort: Sequence[Submission],
    *,
    extract: Callable[[Submission, str], str],
    prepare: Callable[[str], _Prepared],
    set_weight: float,
    min_chars: int,
    threshold: int,
    s: SimilaritySettings,
) -> SimilarityResult:
    content = extract(submission, question_id)
    if len(content.strip()) < min_chars:
        return SimilarityResult(question_id=question_id)
    mine = prepare(content)
    best = 0
    matches: List[SimilarityMatch] = []
    for peer in recent_peers(submission, cohort, s.max_peers):
        other = extract(peer, question_id)
        if len(other.strip()) < min_chars:
            continue
        sim = _blend(mine, prepare(other), set_weight)
        best = max(best, sim)
        if sim >= threshold:
            matches.append(
                SimilarityMatch(
                    peer_submission_id=peer.id,
                    peer_name=peer.candidate.name,
                    peer_email=peer.candidate.email,
                    similarity=sim,
                )
            )
    matches.sort(key=lambda m: m.similarity, reverse=True)
    return SimilarityResult(
        question_id=question_id,
        similarity_score=best,
        flagged=best >= threshold,
        matches=matches[: s.top_n],
    )


def compare_text(
    submission: Submission,
    question_id: str,
    cohort: Sequence[Submission],
    threshold: Optional[int] = None,
    *,
    settings: SimilaritySettings | None = None,
) -> SimilarityResult:
    s = settings or SimilaritySettings()
    return _compare(
        submission, question_id, cohort,
        extract=_answer_text, prepare=_prepare_text, set_weight=s.text_word_weight,
        min_chars=s.text_min_chars,
        threshold=s.text_threshold if threshold is None else threshold,
        s=s,
    )


def compare_code(
    submission: Submission,
    question_id: str,
    cohort: Sequence[Submission],
    threshold: Optional[int] = None,
    *,
    settings: SimilaritySettings | None = None,
) -> SimilarityResult:
    s = settings or SimilaritySettings()
    return _compare(
        submission, question_id, cohort,
        extract=_answer_code, prepare=_prepare_code, set_weight=s.code_token_weight,
        min_chars=s.code_min_chars,
        threshold=s.code_threshold if threshold is None else threshold,
        s=s,
    )


def check_submission(
    submission: Submission,
    questions: Sequence[Question],
    cohort: Sequence[Submission],
    settings: SimilaritySettings | None = None,
) -> Dict[str, SimilarityResult]:
    """Run the matching comparator for every subjective and coding question."""
    out: Dict[str, SimilarityResult] = {}
    for q in questions:
        if q.type == "subjective":
            out[q.id] = compare_text(submission, q.id, cohort, settings=settings)
        elif q.type == "coding":
            out[q.id] = compare_code(submission, q.id, cohort, settings=settings)
    flagged = [qid for qid, r in out.items() if r.flagged]
    if flagged:
        log.info("similarity flags for %s: %s", submission.id, ", ".join(flagged))
    return out
