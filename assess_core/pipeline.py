"""One evaluation run: score, similarity, integrity, benchmark, persist.

The cohort snapshot is fetched once and shared by every component, so all
numbers in an :class:`EvaluationOutcome` are a function of (submission,
question bank, snapshot).
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from .benchmark import compare
from .config import GRADER_LOG_PATH, settings_for_assessment
from .errors import PersistenceError, SubmissionNotFound
from .grader import RemoteGrader
from .integrity import assess
from .records import to_basic
from .scoring import decide_status, evaluate
from .similarity import check_submission
from .types import (
    BenchmarkComparison,
    BotRiskReport,
    Question,
    ScoreRecord,
    SimilarityResult,
    Submission,
    SubmissionStatus,
)

log = logging.getLogger(__name__)


class SubmissionStore(Protocol):
    def get_submission(self, submission_id: str) -> Submission: ...

    def list_cohort(self, assessment_id: str) -> List[Submission]: ...

    def get_questions(self, assessment_id: str) -> List[Question]: ...

    def get_passing_percentage(self, assessment_id: str) -> Optional[float]: ...

    def save_outcome(self, outcome: "EvaluationOutcome") -> None: ...


@dataclass
class EvaluationOutcome:
    submission_id: str
    score: ScoreRecord
    plagiarism: Dict[str, SimilarityResult]
    plagiarism_flagged: bool
    bot_detection: BotRiskReport
    benchmark: BenchmarkComparison
    status: SubmissionStatus
    grader_used: bool
    evaluated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def annotate(self, submission: Submission) -> Submission:
        """Copy of ``submission`` carrying this outcome's annotations."""
        return dataclasses.replace(
            submission,
            status=self.status,
            scores=self.score,
            plagiarism=dict(self.plagiarism),
            bot_detection=self.bot_detection,
        )

    def to_dict(self) -> Dict[str, Any]:
        return to_basic(self)


def _fetch_cohort(store: SubmissionStore, assessment_id: str) -> List[Submission]:
    try:
        return list(store.list_cohort(assessment_id))
    except Exception as exc:  # store backends raise their own error types
        log.warning("cohort fetch failed for assessment %s, evaluating against an empty cohort: %s", assessment_id, exc)
        return []


def _persist(store: SubmissionStore, outcome: EvaluationOutcome, retries: int) -> None:
    last: Exception | None = None
    for attempt in range(1, retries + 1):
        try:
            store.save_outcome(outcome)
            return
        except Exception as exc:  # store backends raise their own error types
            last = exc
            log.warning("save attempt %d/%d for %s failed: %s", attempt, retries, outcome.submission_id, exc)
    raise PersistenceError(outcome.submission_id, retries, last) from last


def evaluate_submission(
    submission_id: str,
    store: SubmissionStore,
    grader: RemoteGrader | None = None,
    cfg: Mapping[str, Any] | None = None,
) -> EvaluationOutcome:
    """Evaluate a finalized submission and persist the result.

    Raises :class:`SubmissionNotFound` for unknown ids and
    :class:`PersistenceError` when the outcome cannot be saved.
    """
    sub = store.get_submission(submission_id)
    questions = store.get_questions(sub.assessment_id)
    settings = settings_for_assessment(cfg, sub.assessment_id)
    cohort = _fetch_cohort(store, sub.assessment_id)
    log.info("evaluating %s (assessment %s, cohort %d)", sub.id, sub.assessment_id, len(cohort))

    log_path = str((cfg or {}).get("GRADER_LOG_PATH", GRADER_LOG_PATH) or "")
    score = evaluate(sub, questions, grader, settings=settings.scoring, log_path=log_path)
    plagiarism = check_submission(sub, questions, cohort, settings.similarity)
    bot = assess(sub, cohort, questions, settings.integrity)
    cohort_scores = [p.scores for p in cohort if p.scores is not None and p.id != sub.id]
    cohort_scores.append(score)
    benchmark = compare(score, cohort_scores, settings.benchmark)

    outcome = EvaluationOutcome(
        submission_id=sub.id,
        score=score,
        plagiarism=plagiarism,
        plagiarism_flagged=any(r.flagged for r in plagiarism.values()),
        bot_detection=bot,
        benchmark=benchmark,
        status=decide_status(score, store.get_passing_percentage(sub.assessment_id)),
        grader_used=score.source == "remote",
    )
    _persist(store, outcome, settings.persist_retries)
    log.info(
        "evaluated %s: %d%% (%s), status=%s, risk=%d",
        sub.id, score.percentage, score.source, outcome.status, bot.risk_score,
    )
    return outcome


class MemoryStore:
    """In-process :class:`SubmissionStore` over plain dicts."""

    def __init__(
        self,
        questions: Mapping[str, Sequence[Question]] | None = None,
        submissions: Sequence[Submission] = (),
        passing: Mapping[str, Optional[float]] | None = None,
    ):
        self.questions: Dict[str, List[Question]] = {k: list(v) for k, v in (questions or {}).items()}
        self.submissions: Dict[str, Submission] = {s.id: s for s in submissions}
        self.passing: Dict[str, Optional[float]] = dict(passing or {})
        self.outcomes: Dict[str, EvaluationOutcome] = {}

    def get_submission(self, submission_id: str) -> Submission:
        try:
            return self.submissions[submission_id]
        except KeyError:
            raise SubmissionNotFound(submission_id) from None

    def list_cohort(self, assessment_id: str) -> List[Submission]:
        return [s for s in self.submissions.values() if s.assessment_id == assessment_id]

    def get_questions(self, assessment_id: str) -> List[Question]:
        return list(self.questions.get(assessment_id, ()))

    def get_passing_percentage(self, assessment_id: str) -> Optional[float]:
        return self.passing.get(assessment_id)

    def save_outcome(self, outcome: EvaluationOutcome) -> None:
        sub = self.get_submission(outcome.submission_id)
        self.submissions[sub.id] = outcome.annotate(sub)
        self.outcomes[sub.id] = outcome
