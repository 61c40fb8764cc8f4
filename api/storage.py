"""JSON-file persistence for assessments, submissions and evaluation outcomes.

The production deployment should ideally swap this module for a proper
database-backed implementation. For now everything lives in JSON files under
``DATA_DIR`` so the API stays stateless across restarts.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from statistics import median
from typing import Any, Dict, List, Optional

from assess_core.errors import SubmissionNotFound
from assess_core.export import leaderboard_rows
from assess_core.pipeline import EvaluationOutcome
from assess_core.question_bank import parse_questions
from assess_core.records import submission_from_dict, submission_to_dict
from assess_core.types import Question, Submission

log = logging.getLogger(__name__)

DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()

_LOCK = threading.Lock()


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log.warning("unreadable store file %s: %s", path, exc)
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class JsonStore:
    """Submission store over ``<root>/assessments``, ``submissions`` and ``outcomes``."""

    def __init__(self, root: Path | str | None = None):
        self.root = Path(root).resolve() if root is not None else DATA_ROOT
        self.assessments_dir = self.root / "assessments"
        self.submissions_dir = self.root / "submissions"
        self.outcomes_dir = self.root / "outcomes"
        self.index_path = self.root / "submissions_index.json"

    # ---- assessments ----
    def put_assessment(
        self,
        assessment_id: str,
        questions: List[Dict[str, Any]],
        passing_percentage: Optional[float] = None,
        title: str = "",
    ) -> Dict[str, Any]:
        record = {
            "id": assessment_id,
            "title": title,
            "passing_percentage": passing_percentage,
            "questions": questions,
            "updated_at": utcnow_iso(),
        }
        with _LOCK:
            _write_json(self.assessments_dir / f"{assessment_id}.json", record)
        return record

    def get_assessment(self, assessment_id: str) -> Optional[Dict[str, Any]]:
        return _read_json(self.assessments_dir / f"{assessment_id}.json", None)

    def get_questions(self, assessment_id: str) -> List[Question]:
        record = self.get_assessment(assessment_id) or {}
        return parse_questions(record.get("questions") or [])

    def get_passing_percentage(self, assessment_id: str) -> Optional[float]:
        record = self.get_assessment(assessment_id) or {}
        value = record.get("passing_percentage")
        return None if value is None else float(value)

    # ---- submissions ----
    def _index(self) -> Dict[str, List[str]]:
        return _read_json(self.index_path, {})

    def add_submission(self, submission: Submission) -> Submission:
        with _LOCK:
            _write_json(self.submissions_dir / f"{submission.id}.json", submission_to_dict(submission))
            index = self._index()
            ids = index.setdefault(submission.assessment_id, [])
            if submission.id not in ids:
                ids.append(submission.id)
            _write_json(self.index_path, index)
        return submission

    def get_submission(self, submission_id: str) -> Submission:
        raw = _read_json(self.submissions_dir / f"{submission_id}.json", None)
        if not raw:
            raise SubmissionNotFound(submission_id)
        return submission_from_dict(raw)

    def list_cohort(self, assessment_id: str) -> List[Submission]:
        out: List[Submission] = []
        for sid in self._index().get(assessment_id, []):
            raw = _read_json(self.submissions_dir / f"{sid}.json", None)
            if raw:
                out.append(submission_from_dict(raw))
        return out

    def save_outcome(self, outcome: EvaluationOutcome) -> None:
        sub = self.get_submission(outcome.submission_id)
        with _LOCK:
            _write_json(self.submissions_dir / f"{sub.id}.json", submission_to_dict(outcome.annotate(sub)))
            _write_json(self.outcomes_dir / f"{sub.id}.json", outcome.to_dict())

    def get_outcome(self, submission_id: str) -> Optional[Dict[str, Any]]:
        return _read_json(self.outcomes_dir / f"{submission_id}.json", None)

    def update_status(self, submission_id: str, status: str) -> Submission:
        sub = self.get_submission(submission_id)
        sub.status = status  # type: ignore[assignment]
        with _LOCK:
            _write_json(self.submissions_dir / f"{sub.id}.json", submission_to_dict(sub))
        return sub

    # ---- recruiter views ----
    def leaderboard(self, assessment_id: str) -> List[Dict[str, Any]]:
        return leaderboard_rows(self.list_cohort(assessment_id))

    def stats(self, assessment_id: str) -> Dict[str, Any]:
        cohort = self.list_cohort(assessment_id)
        scored = [s for s in cohort if s.scores is not None]
        pcts = [s.scores.percentage for s in scored]
        return {
            "assessment_id": assessment_id,
            "submissions": len(cohort),
            "evaluated": len(scored),
            "average_percentage": round(sum(pcts) / len(pcts), 1) if pcts else 0,
            "median_percentage": median(pcts) if pcts else 0,
            "shortlisted": sum(1 for s in cohort if s.status == "shortlisted"),
            "rejected": sum(1 for s in cohort if s.status == "rejected"),
            "flagged_bots": sum(1 for s in scored if s.bot_detection and s.bot_detection.is_bot),
            "flagged_plagiarism": sum(1 for s in scored if any(r.flagged for r in s.plagiarism.values())),
        }
