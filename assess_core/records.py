"""Conversion between typed records and JSON-safe dicts.

Inbound payloads (store rows, API bodies, CLI bundles) use the field names of
the candidate-facing layer: ``answers`` keyed by question id, ``response``
shaped by question type, ISO-8601 timestamps.
"""
from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .types import (
    AntiCheatTelemetry,
    Answer,
    BotRiskReport,
    CandidateInfo,
    CodeResponse,
    CodingSection,
    EvaluatedAnswer,
    ExecutionResult,
    McqResponse,
    McqSection,
    Response,
    RiskFlag,
    ScoreRecord,
    SimilarityMatch,
    SimilarityResult,
    SkillScore,
    Submission,
    SubjectiveSection,
    TextResponse,
)


# -------- utils: make any record JSON-safe ----------
def to_basic(x: Any) -> Any:
    if x is None or isinstance(x, (bool, int, float, str)):
        return x
    if isinstance(x, datetime):
        return x.isoformat()
    if dataclasses.is_dataclass(x) and not isinstance(x, type):
        return {f.name: to_basic(getattr(x, f.name)) for f in dataclasses.fields(x)}
    if isinstance(x, dict):
        return {str(k): to_basic(v) for k, v in x.items()}
    if isinstance(x, (frozenset, set)):
        return sorted(to_basic(v) for v in x)
    if isinstance(x, (list, tuple)):
        return [to_basic(v) for v in x]
    return str(x)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 string or epoch seconds -> aware ``datetime`` (naive means UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(float(value), tz=timezone.utc)
    else:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _optional_int(value: Any) -> Optional[int]:
    """Integral selections only; fractions, bools and other junk become ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def response_from_dict(raw: Mapping[str, Any] | None, question_type: str | None = None) -> Response:
    """Build the response variant; the shape is taken from ``question_type`` or inferred from keys."""
    raw = raw or {}
    qtype = (question_type or "").lower()
    if not qtype:
        if "code" in raw:
            qtype = "coding"
        elif "text" in raw:
            qtype = "subjective"
        else:
            qtype = "mcq"
    if qtype == "coding":
        results = tuple(
            ExecutionResult(
                test_case_index=int(r.get("test_case_index", idx)),
                passed=bool(r.get("passed", False)),
                actual_output=r.get("actual_output"),
                error=r.get("error"),
                execution_time_ms=float(r.get("execution_time_ms") or 0.0),
            )
            for idx, r in enumerate(raw.get("execution_results") or ())
        )
        return CodeResponse(
            code=str(raw.get("code") or ""),
            language=str(raw.get("language") or ""),
            execution_results=results,
        )
    if qtype == "subjective":
        return TextResponse(text=str(raw.get("text") or ""))
    return McqResponse(selected_option=_optional_int(raw.get("selected_option")))


def answer_from_dict(question_id: str, raw: Mapping[str, Any]) -> Answer:
    return Answer(
        question_id=str(raw.get("question_id") or question_id),
        response=response_from_dict(raw.get("response"), raw.get("question_type")),
        time_spent_seconds=max(0.0, float(raw.get("time_spent_seconds") or 0.0)),
    )


def score_record_from_dict(raw: Mapping[str, Any]) -> ScoreRecord:
    sections = raw.get("sections") or {}
    mcq = raw.get("mcq") or sections.get("mcq") or {}
    subj = raw.get("subjective") or sections.get("subjective") or {}
    coding = raw.get("coding") or sections.get("coding") or {}
    return ScoreRecord(
        total_score=raw.get("total_score", 0),
        total_possible=raw.get("total_possible", 0),
        percentage=int(raw.get("percentage", 0)),
        mcq=McqSection(**mcq),
        subjective=SubjectiveSection(**subj),
        coding=CodingSection(**coding),
        skill_scores={
            str(k): SkillScore(score=v.get("score", 0), total=v.get("total", 0), percentage=int(v.get("percentage", 0)))
            for k, v in (raw.get("skill_scores") or {}).items()
        },
        evaluated_answers=[EvaluatedAnswer(**ea) for ea in raw.get("evaluated_answers") or ()],
        source=raw.get("source", "heuristic"),
    )


def similarity_result_from_dict(raw: Mapping[str, Any]) -> SimilarityResult:
    return SimilarityResult(
        question_id=str(raw.get("question_id", "")),
        similarity_score=int(raw.get("similarity_score", 0)),
        flagged=bool(raw.get("flagged", False)),
        matches=[SimilarityMatch(**m) for m in raw.get("matches") or ()],
    )


def bot_report_from_dict(raw: Mapping[str, Any]) -> BotRiskReport:
    return BotRiskReport(
        flags=[RiskFlag(**f) for f in raw.get("flags") or ()],
        risk_score=int(raw.get("risk_score", 0)),
        is_bot=bool(raw.get("is_bot", False)),
        confidence=int(raw.get("confidence", 0)),
    )


def submission_from_dict(raw: Mapping[str, Any]) -> Submission:
    """Parse a stored or posted submission, including any earlier annotations."""
    cand = raw.get("candidate") or raw.get("candidate_info") or {}
    anti = raw.get("anti_cheat") or raw.get("anti_cheat_data") or {}
    answers_raw = raw.get("answers") or {}
    if isinstance(answers_raw, list):
        answers_raw = {str(a.get("question_id")): a for a in answers_raw}
    submitted_at = parse_timestamp(raw.get("submitted_at")) or datetime.now(timezone.utc)
    scores = raw.get("scores")
    bot = raw.get("bot_detection")
    return Submission(
        id=str(raw["id"]),
        assessment_id=str(raw["assessment_id"]),
        candidate=CandidateInfo(
            name=str(cand.get("name") or ""),
            email=str(cand.get("email") or ""),
            user_id=cand.get("user_id"),
            started_at=parse_timestamp(cand.get("started_at") or raw.get("started_at")),
        ),
        answers={str(qid): answer_from_dict(str(qid), a or {}) for qid, a in answers_raw.items()},
        submitted_at=submitted_at,
        anti_cheat=AntiCheatTelemetry(
            tab_switches=max(0, int(anti.get("tab_switches") or 0)),
            copy_paste_detected=bool(anti.get("copy_paste_detected", False)),
            question_times={str(k): float(v) for k, v in (anti.get("question_times") or {}).items()},
        ),
        job_title=str(raw.get("job_title") or ""),
        status=raw.get("status") or "pending",
        scores=score_record_from_dict(scores) if scores else None,
        plagiarism={
            str(qid): similarity_result_from_dict(r) for qid, r in (raw.get("plagiarism") or {}).items()
        },
        bot_detection=bot_report_from_dict(bot) if bot else None,
    )


def submission_to_dict(sub: Submission) -> Dict[str, Any]:
    return to_basic(sub)
