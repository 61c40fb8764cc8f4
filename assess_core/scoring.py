from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .config import ScoringSettings
from .grader import RemoteEvaluation, RemoteGrader, request_remote_evaluation
from .heuristics import keyword_coverage, subjective_ratio
from .types import (
    Answer,
    CodingContent,
    CodingSection,
    EvaluatedAnswer,
    McqContent,
    McqSection,
    Question,
    ScoreRecord,
    SkillScore,
    SubjectiveContent,
    SubjectiveSection,
    Submission,
    SubmissionStatus,
)
from .utils import clamp, percent, round_half_up

log = logging.getLogger(__name__)

NO_ANSWER = "No answer provided"


def _score_mcq(q: Question, content: McqContent, answer: Answer) -> EvaluatedAnswer:
    chosen = getattr(answer.response, "selected_option", None)
    is_correct = chosen is not None and chosen == content.correct_answer
    if is_correct:
        feedback = "Correct!"
    else:
        idx = content.correct_answer
        shown = content.options[idx] if 0 <= idx < len(content.options) else str(idx)
        feedback = f"Incorrect. The correct answer was: {shown}"
    return EvaluatedAnswer(
        question_id=q.id,
        type="mcq",
        score=q.marks if is_correct else 0,
        max_score=q.marks,
        is_correct=is_correct,
        feedback=feedback,
    )


def _score_subjective(
    q: Question, content: SubjectiveContent, answer: Answer, s: ScoringSettings
) -> EvaluatedAnswer:
    text = getattr(answer.response, "text", "") or ""
    ratio = subjective_ratio(text, s)
    if ratio <= 0:
        feedback = "No answer provided or answer too short."
    else:
        feedback = "Answer evaluated on length and completeness (automated grading unavailable)."
        hit, declared = keyword_coverage(text, content.expected_keywords)
        if declared:
            feedback += f" {hit}/{declared} expected concepts mentioned."
    return EvaluatedAnswer(
        question_id=q.id,
        type="subjective",
        score=round_half_up(q.marks * ratio),
        max_score=q.marks,
        feedback=feedback,
    )


def _score_coding(q: Question, content: CodingContent, answer: Answer, s: ScoringSettings) -> EvaluatedAnswer:
    code = getattr(answer.response, "code", "") or ""
    results = getattr(answer.response, "execution_results", ()) or ()
    if len(code.strip()) < s.coding_min_chars:
        return EvaluatedAnswer(
            question_id=q.id, type="coding", score=0, max_score=q.marks,
            feedback="No code submitted or code too short.",
        )
    if results:
        total = len(content.test_cases) or len(results)
        passed = min(total, sum(1 for r in results if r.passed))
        return EvaluatedAnswer(
            question_id=q.id,
            type="coding",
            score=round_half_up(q.marks * passed / total),
            max_score=q.marks,
            feedback=f"{passed}/{total} test cases passed",
            test_cases_passed=passed,
            total_test_cases=total,
        )
    return EvaluatedAnswer(
        question_id=q.id,
        type="coding",
        score=round_half_up(q.marks * s.coding_participation_ratio),
        max_score=q.marks,
        feedback="Code submitted but not executed; participation credit awarded.",
    )


def score_answer(q: Question, answer: Optional[Answer], settings: ScoringSettings | None = None) -> EvaluatedAnswer:
    """Heuristic score for one question. Missing answers score 0."""
    s = settings or ScoringSettings()
    if answer is None:
        return EvaluatedAnswer(question_id=q.id, type=q.type, score=0, max_score=q.marks, feedback=NO_ANSWER)
    content = q.content
    if isinstance(content, McqContent):
        return _score_mcq(q, content, answer)
    if isinstance(content, SubjectiveContent):
        return _score_subjective(q, content, answer, s)
    return _score_coding(q, content, answer, s)


def build_record(
    questions: Sequence[Question],
    evaluated: Sequence[EvaluatedAnswer],
    answered: Iterable[str],
    source: str = "heuristic",
) -> ScoreRecord:
    """Aggregate per-question results into sections, skills and totals.

    ``evaluated`` is aligned with ``questions``; every question counts toward
    its section and skill totals whether answered or not.
    """
    answered_ids = set(answered)
    mcq, subj, coding = McqSection(), SubjectiveSection(), CodingSection()
    skills: Dict[str, List[float]] = {}
    total_score = 0
    total_possible = 0
    for q, ev in zip(questions, evaluated):
        total_score += ev.score
        total_possible += q.marks
        if q.type == "mcq":
            mcq.score += ev.score
            mcq.total += q.marks
            mcq.total_questions += 1
            if ev.is_correct:
                mcq.correct += 1
        elif q.type == "subjective":
            subj.score += ev.score
            subj.total += q.marks
            subj.total_questions += 1
            if q.id in answered_ids:
                subj.evaluated += 1
        else:
            coding.score += ev.score
            coding.total += q.marks
            coding.total_questions += 1
            coding.test_cases_passed += ev.test_cases_passed
            coding.total_test_cases += ev.total_test_cases
        for tag in sorted(q.skill_tags):
            row = skills.setdefault(tag, [0, 0])
            row[0] += ev.score
            row[1] += q.marks
    return ScoreRecord(
        total_score=total_score,
        total_possible=total_possible,
        percentage=percent(total_score, total_possible),
        mcq=mcq,
        subjective=subj,
        coding=coding,
        skill_scores={
            tag: SkillScore(score=sc, total=tot, percentage=percent(sc, tot)) for tag, (sc, tot) in skills.items()
        },
        evaluated_answers=list(evaluated),
        source=source,  # type: ignore[arg-type]
    )


def _merge_remote(
    questions: Sequence[Question], evaluated: Sequence[EvaluatedAnswer], remote: RemoteEvaluation
) -> List[EvaluatedAnswer]:
    by_id = {ra.question_id: ra for ra in remote.evaluated_answers}
    merged: List[EvaluatedAnswer] = []
    for q, ev in zip(questions, evaluated):
        ra = by_id.get(q.id)
        # MCQ stays exact-match
        if ra is None or q.type == "mcq":
            merged.append(ev)
            continue
        merged.append(
            EvaluatedAnswer(
                question_id=q.id,
                type=q.type,
                score=round_half_up(clamp(ra.score, 0, q.marks)),
                max_score=q.marks,
                is_correct=ev.is_correct,
                feedback=ra.feedback or ev.feedback,
                test_cases_passed=ev.test_cases_passed,
                total_test_cases=ev.total_test_cases,
            )
        )
    return merged


def evaluate(
    submission: Submission,
    questions: Sequence[Question],
    grader: RemoteGrader | None = None,
    *,
    settings: ScoringSettings | None = None,
    log_path: str = "",
) -> ScoreRecord:
    """Score a submission against its question bank.

    The heuristic record is always computed. A supplied ``grader`` may
    supersede subjective and coding scores; any grader failure leaves the
    heuristic record in place.
    """
    s = settings or ScoringSettings()
    evaluated = [score_answer(q, submission.answers.get(q.id), s) for q in questions]
    for ev in evaluated:
        log.debug("%s/%s: %s of %s (%s)", submission.id, ev.question_id, ev.score, ev.max_score, ev.feedback)
    answered = list(submission.answers)
    if grader is None:
        return build_record(questions, evaluated, answered)

    outcome = request_remote_evaluation(grader, submission, questions, log_path=log_path)
    if not outcome.ok:
        log.debug("grader fallback for %s: %s", submission.id, outcome.error)
        return build_record(questions, evaluated, answered)
    merged = _merge_remote(questions, evaluated, outcome.evaluation)
    return build_record(questions, merged, answered, source="remote")


def decide_status(score: ScoreRecord, passing_percentage: Optional[float]) -> SubmissionStatus:
    """``shortlisted`` at or above a configured pass mark, else ``evaluated``."""
    if passing_percentage is not None and score.percentage >= passing_percentage:
        return "shortlisted"
    return "evaluated"
