from __future__ import annotations
import json
from pathlib import Path
from typing import Any, Iterable, List, Mapping

from .types import CodingCase, CodingContent, McqContent, Question, QuestionContent, SubjectiveContent

DIFFICULTIES = ("easy", "medium", "hard")


def _content_from_dict(qtype: str, raw: Mapping[str, Any]) -> QuestionContent:
    if qtype == "mcq":
        return McqContent(
            question=str(raw.get("question", "")),
            options=tuple(str(o) for o in raw.get("options") or ()),
            correct_answer=int(raw.get("correct_answer", 0)),
            explanation=raw.get("explanation"),
        )
    if qtype == "subjective":
        return SubjectiveContent(
            question=str(raw.get("question", "")),
            expected_keywords=tuple(str(k) for k in raw.get("expected_keywords") or ()),
            rubric=str(raw.get("rubric") or ""),
            sample_answer=raw.get("sample_answer"),
        )
    if qtype == "coding":
        cases = tuple(
            CodingCase(
                input=str(tc.get("input", "")),
                expected_output=str(tc.get("expected_output", "")),
                weight=float(tc.get("weight", 1.0)),
                is_hidden=bool(tc.get("is_hidden", False)),
            )
            for tc in raw.get("test_cases") or ()
        )
        return CodingContent(
            problem_statement=str(raw.get("problem_statement", "")),
            test_cases=cases,
            output_format=str(raw.get("output_format") or ""),
        )
    raise ValueError(f"unknown question type {qtype!r}")


def _marks(value: Any) -> float:
    num = float(value)
    return int(num) if num.is_integer() else num


def question_from_dict(raw: Mapping[str, Any]) -> Question:
    """Build a typed :class:`Question` from a bank entry.

    Raises ``ValueError`` / ``KeyError`` for entries that cannot be a question
    (unknown type, non-positive marks, missing id).
    """
    qtype = str(raw["type"]).lower()
    difficulty = str(raw.get("difficulty") or "medium").lower()
    if difficulty not in DIFFICULTIES:
        difficulty = "medium"
    return Question(
        id=str(raw["id"]),
        type=qtype,  # type: ignore[arg-type]
        marks=_marks(raw.get("marks", 0)),
        content=_content_from_dict(qtype, raw.get("content") or {}),
        skill_tags=frozenset(str(t) for t in raw.get("skill_tags") or ()),
        difficulty=difficulty,  # type: ignore[arg-type]
    )


def parse_questions(raw: Iterable[Mapping[str, Any]]) -> List[Question]:
    """Parse an ordered bank; order is preserved, it drives MCQ pattern checks."""
    return [question_from_dict(r) for r in raw]


def load_questions(path: str | Path) -> List[Question]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, Mapping):
        data = data.get("questions") or []
    return parse_questions(data)


def audit_questions(questions: Iterable[Question]) -> List[str]:
    """Return human-readable problems with a bank; empty when the bank is sound."""
    problems: List[str] = []
    seen: set[str] = set()
    for q in questions:
        if q.id in seen:
            problems.append(f"{q.id}: duplicate question id")
        seen.add(q.id)
        if not q.skill_tags:
            problems.append(f"{q.id}: no skill_tags, question will not count toward any skill")
        content = q.content
        if isinstance(content, McqContent):
            if len(content.options) < 2:
                problems.append(f"{q.id}: MCQ needs at least two options")
            if not 0 <= content.correct_answer < len(content.options):
                problems.append(f"{q.id}: correct_answer {content.correct_answer} out of range")
        elif isinstance(content, CodingContent):
            if not content.test_cases:
                problems.append(f"{q.id}: coding question has no test cases")
        elif isinstance(content, SubjectiveContent):
            if not content.expected_keywords:
                problems.append(f"{q.id}: subjective question has no expected_keywords")
    return problems
