from __future__ import annotations

import json

import pytest

import tools.validate_bank as validate_bank
from assess_core.question_bank import audit_questions, load_questions, parse_questions, question_from_dict
from tests.conftest import build_question_bank, coding, mcq, subjective


def _raw_bank():
    return [
        {
            "id": "q1",
            "type": "MCQ",
            "marks": "5",
            "difficulty": "expert",
            "skill_tags": ["python"],
            "content": {"question": "2+2?", "options": ["3", "4"], "correct_answer": 1},
        },
        {
            "id": "q2",
            "type": "subjective",
            "marks": 7.5,
            "skill_tags": ["writing"],
            "content": {"question": "Why?", "expected_keywords": ["because"]},
        },
    ]


def test_parse_normalizes_fields():
    q1, q2 = parse_questions(_raw_bank())
    assert (q1.type, q1.marks, q1.difficulty) == ("mcq", 5, "medium")
    assert q1.content.options == ("3", "4")
    assert q2.marks == 7.5
    assert q2.skill_tags == frozenset({"writing"})


@pytest.mark.parametrize(
    "raw",
    [
        {"id": "x", "type": "essay", "marks": 1},
        {"id": "x", "type": "mcq", "marks": 0, "content": {"options": ["a", "b"]}},
        {"type": "mcq", "marks": 1},
    ],
)
def test_unusable_entries_raise(raw):
    with pytest.raises((KeyError, ValueError)):
        question_from_dict(raw)


def test_load_accepts_wrapped_bank(tmp_path):
    path = tmp_path / "bank.json"
    path.write_text(json.dumps({"questions": _raw_bank()}), encoding="utf-8")
    assert [q.id for q in load_questions(path)] == ["q1", "q2"]


def test_sound_bank_has_no_problems():
    assert audit_questions(build_question_bank()) == []


def test_audit_reports_each_problem():
    bank = [
        mcq("m1", correct=4),
        mcq("m1", options=("only",), correct=0),
        subjective("s1", tags=()),
        coding("c1", cases=0),
    ]
    problems = audit_questions(bank)
    assert "m1: correct_answer 4 out of range" in problems
    assert "m1: duplicate question id" in problems
    assert "m1: MCQ needs at least two options" in problems
    assert "s1: no skill_tags, question will not count toward any skill" in problems
    assert "s1: subjective question has no expected_keywords" in problems
    assert "c1: coding question has no test cases" in problems


def test_validate_main_exit_codes(tmp_path, capsys):
    good = tmp_path / "good.json"
    good.write_text(json.dumps(_raw_bank()), encoding="utf-8")
    assert validate_bank.main([str(good)]) == 0
    out = capsys.readouterr().out
    assert "2 questions: MCQ=1 subjective=1 coding=0" in out
    assert "Bank looks sound" in out

    bad_raw = _raw_bank()
    bad_raw[0]["content"]["correct_answer"] = 9
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps(bad_raw), encoding="utf-8")
    assert validate_bank.main([str(bad)]) == 1
    assert "out of range" in capsys.readouterr().out

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert validate_bank.main([str(broken)]) == 1
    assert validate_bank.main([str(tmp_path / "missing.json")]) == 2
