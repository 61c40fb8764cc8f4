from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from assess_core.types import (
    AntiCheatTelemetry,
    Answer,
    CandidateInfo,
    CodeResponse,
    CodingCase,
    CodingContent,
    ExecutionResult,
    McqContent,
    McqResponse,
    Question,
    Submission,
    SubjectiveContent,
    TextResponse,
)

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def mcq(qid: str, *, correct: int = 1, marks: float = 10, tags=("python",), options=("A", "B", "C", "D")) -> Question:
    return Question(
        id=qid,
        type="mcq",
        marks=marks,
        content=McqContent(question=f"{qid}?", options=tuple(options), correct_answer=correct),
        skill_tags=frozenset(tags),
    )


def subjective(qid: str, *, marks: float = 20, tags=("communication",), keywords=()) -> Question:
    return Question(
        id=qid,
        type="subjective",
        marks=marks,
        content=SubjectiveContent(question=f"Explain {qid}", expected_keywords=tuple(keywords)),
        skill_tags=frozenset(tags),
    )


def coding(qid: str, *, marks: float = 20, cases: int = 4, tags=("algorithms",)) -> Question:
    return Question(
        id=qid,
        type="coding",
        marks=marks,
        content=CodingContent(
            problem_statement=f"Solve {qid}",
            test_cases=tuple(CodingCase(input=str(i), expected_output=str(i * 2)) for i in range(cases)),
        ),
        skill_tags=frozenset(tags),
    )


def build_question_bank() -> list[Question]:
    """Deterministic mixed bank: 3 MCQ, 1 subjective, 1 coding."""

    return [
        mcq("q1", correct=1, tags=("python",)),
        mcq("q2", correct=0, tags=("python", "sql")),
        mcq("q3", correct=2, tags=("sql",)),
        subjective("q4", keywords=("index", "query plan")),
        coding("q5"),
    ]


def code_answer(code: str, passed: list[bool] | None = None) -> CodeResponse:
    results = tuple(ExecutionResult(test_case_index=i, passed=p) for i, p in enumerate(passed or []))
    return CodeResponse(code=code, language="python", execution_results=results)


def build_submission(
    sid: str,
    responses: dict | None = None,
    *,
    assessment_id: str = "a1",
    email: str | None = None,
    name: str | None = None,
    submitted_at: datetime | None = None,
    started_at: datetime | None = None,
    tab_switches: int = 0,
    copy_paste: bool = False,
    question_times: dict[str, float] | None = None,
) -> Submission:
    """Submission whose answers wrap ``responses`` ({question_id: Response})."""

    submitted = submitted_at or T0 + timedelta(hours=1)
    return Submission(
        id=sid,
        assessment_id=assessment_id,
        candidate=CandidateInfo(
            name=name or f"Candidate {sid}",
            email=email or f"{sid}@example.com",
            started_at=started_at or T0,
        ),
        answers={qid: Answer(question_id=qid, response=r, time_spent_seconds=30.0) for qid, r in (responses or {}).items()},
        submitted_at=submitted,
        anti_cheat=AntiCheatTelemetry(
            tab_switches=tab_switches,
            copy_paste_detected=copy_paste,
            question_times=dict(question_times or {}),
        ),
    )


def sel(option: int | None) -> McqResponse:
    return McqResponse(selected_option=option)


def text(value: str) -> TextResponse:
    return TextResponse(text=value)


@pytest.fixture
def bank() -> list[Question]:
    return build_question_bank()
