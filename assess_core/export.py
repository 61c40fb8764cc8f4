"""Leaderboard rows for recruiters, in JSON or CSV form."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List
import csv
import io

from .types import Submission

_FIELDS: tuple[str, ...] = (
    "rank",
    "submission_id",
    "candidate_name",
    "candidate_email",
    "percentage",
    "total_score",
    "total_possible",
    "status",
    "plagiarism_flagged",
    "risk_score",
    "is_bot",
    "submitted_at",
)


def leaderboard_rows(submissions: Iterable[Submission]) -> List[Dict[str, Any]]:
    """Evaluated submissions ranked by percentage, earlier submission first on ties."""
    scored = [s for s in submissions if s.scores is not None]
    scored.sort(key=lambda s: (-s.scores.percentage, s.submitted_at))
    rows: List[Dict[str, Any]] = []
    for rank, sub in enumerate(scored, 1):
        bot = sub.bot_detection
        rows.append(
            {
                "rank": rank,
                "submission_id": sub.id,
                "candidate_name": sub.candidate.name,
                "candidate_email": sub.candidate.email,
                "percentage": sub.scores.percentage,
                "total_score": sub.scores.total_score,
                "total_possible": sub.scores.total_possible,
                "status": sub.status,
                "plagiarism_flagged": any(r.flagged for r in sub.plagiarism.values()),
                "risk_score": bot.risk_score if bot else 0,
                "is_bot": bot.is_bot if bot else False,
                "submitted_at": sub.submitted_at.isoformat(),
            }
        )
    return rows


def _normalize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in _FIELDS:
        val = row.get(key)
        if key in {"rank", "percentage", "risk_score"}:
            try:
                out[key] = int(val)
            except (TypeError, ValueError):
                out[key] = 0
        elif key in {"total_score", "total_possible"}:
            try:
                out[key] = float(val)
            except (TypeError, ValueError):
                out[key] = 0.0
        elif key in {"plagiarism_flagged", "is_bot"}:
            out[key] = bool(val)
        else:
            out[key] = "" if val is None else str(val)
    return out


def to_json(rows: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    return {"rows": [_normalize_row(r or {}) for r in rows]}


def to_csv(rows: Iterable[Dict[str, Any]]) -> str:
    """Render leaderboard rows as CSV with a fixed header."""
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_FIELDS)
    writer.writeheader()
    for row in rows:
        writer.writerow(_normalize_row(row or {}))
    return buf.getvalue()


__all__ = ["leaderboard_rows", "to_json", "to_csv"]
