# app_cli/run_evaluation.py
from __future__ import annotations
import argparse, json, logging, sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from assess_core.config import load_config
from assess_core.errors import AssessError
from assess_core.grader import grader_from_cfg
from assess_core.pipeline import MemoryStore, evaluate_submission
from assess_core.question_bank import parse_questions
from assess_core.records import submission_from_dict

log = logging.getLogger(__name__)


def load_bundle(path: str | Path) -> MemoryStore:
    """``{"assessments": [{id, passing_percentage, questions}], "submissions": [...]}`` -> store."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    questions: Dict[str, List[Any]] = {}
    passing: Dict[str, Optional[float]] = {}
    for a in data.get("assessments") or []:
        aid = str(a["id"])
        questions[aid] = parse_questions(a.get("questions") or [])
        passing[aid] = a.get("passing_percentage")
    subs = [submission_from_dict(s) for s in data.get("submissions") or []]
    return MemoryStore(questions=questions, submissions=subs, passing=passing)


def run(bundle: str | Path, submission_id: str | None = None, cfg: Dict[str, Any] | None = None) -> List[Dict[str, Any]]:
    """Evaluate one submission, or every submission in submission order."""
    cfg = load_config() if cfg is None else cfg
    store = load_bundle(bundle)
    grader = grader_from_cfg(cfg)
    if submission_id:
        ids = [submission_id]
    else:
        ids = [s.id for s in sorted(store.submissions.values(), key=lambda s: s.submitted_at)]
    return [evaluate_submission(sid, store, grader, cfg).to_dict() for sid in ids]


def main(argv: List[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Evaluate submissions from a JSON bundle.")
    ap.add_argument("bundle", help="JSON file with assessments and submissions")
    ap.add_argument("--submission", help="evaluate only this submission id")
    ap.add_argument("--out", help="write outcomes here instead of stdout")
    ap.add_argument("--llm", choices=["none", "azure", "openai"], default=None, help="override GRADER_BACKEND")
    ap.add_argument("-v", "--verbose", action="store_true")
    a = ap.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if a.verbose else logging.INFO, format="[%(levelname)s] %(message)s")

    cfg = load_config()
    if a.llm:
        cfg["GRADER_BACKEND"] = a.llm
    try:
        outcomes = run(a.bundle, a.submission, cfg)
    except FileNotFoundError as exc:
        log.error("bundle not found: %s", exc.filename)
        return 2
    except KeyError as exc:
        log.error("bundle is missing a required field: %s", exc)
        return 2
    except ValueError as exc:
        log.error("bundle is malformed: %s", exc)
        return 2
    except AssessError as exc:
        log.error("%s", exc)
        return 1
    body = json.dumps(outcomes, indent=2)
    if a.out:
        Path(a.out).write_text(body, encoding="utf-8")
        log.info("wrote %d outcome(s) to %s", len(outcomes), a.out)
    else:
        print(body)
    return 0


if __name__ == "__main__":
    sys.exit(main())
