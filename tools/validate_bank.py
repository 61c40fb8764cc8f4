from __future__ import annotations
from collections import Counter
import argparse, sys
from typing import List

from assess_core.question_bank import audit_questions, load_questions


def main(argv: List[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Check a question bank before publishing an assessment.")
    ap.add_argument("bank", help="JSON list of questions, or {\"questions\": [...]}")
    a = ap.parse_args(argv)

    try:
        questions = load_questions(a.bank)
    except FileNotFoundError:
        print(f"No such bank: {a.bank}")
        return 2
    except (KeyError, TypeError, ValueError) as exc:
        # json.JSONDecodeError is a ValueError
        print(f"✗ Bank cannot be parsed: {exc}")
        return 1

    by_type = Counter(q.type for q in questions)
    marks = sum(q.marks for q in questions)
    skills = sorted({t for q in questions for t in q.skill_tags})
    print(f"{len(questions)} questions: MCQ={by_type['mcq']} subjective={by_type['subjective']} "
          f"coding={by_type['coding']}  total marks={marks}")
    print(f"Skills: {', '.join(skills) or '-'}")

    problems = audit_questions(questions)
    for p in problems:
        print(f"  → {p}")
    if not problems:
        print("  ✓ Bank looks sound")
        return 0
    return 1


if __name__ == "__main__":
    sys.exit(main())
