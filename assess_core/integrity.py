"""Bot and guessing heuristics over a submission and its cohort snapshot.

Each detector returns zero or more :class:`RiskFlag`; :func:`assess` runs them
in a fixed order and folds the flags into a :class:`BotRiskReport`.
"""
from __future__ import annotations
import logging
from collections import Counter
from typing import List, Sequence

from .config import IntegritySettings
from .types import BotRiskReport, Question, RiskFlag, Submission
from .utils import mean, round_half_up

log = logging.getLogger(__name__)


def _mcq_selections(submission: Submission, questions: Sequence[Question]) -> List[int]:
    out: List[int] = []
    for q in questions:
        if q.type != "mcq":
            continue
        ans = submission.answers.get(q.id)
        sel = getattr(ans.response, "selected_option", None) if ans else None
        if isinstance(sel, int):
            out.append(sel)
    return out


def detect_repeated_application(
    submission: Submission, cohort: Sequence[Submission], s: IntegritySettings
) -> List[RiskFlag]:
    email = submission.candidate.email.strip().lower()
    if not email:
        return []
    same = [p for p in cohort if p.id != submission.id and p.candidate.email.strip().lower() == email]
    n = len(same)
    if n >= s.repeat_high_count:
        return [
            RiskFlag(
                type="repeated_application",
                severity="high",
                description=f"Multiple submissions detected ({n + 1} total)",
                evidence={
                    "count": n + 1,
                    "submissions": [
                        {"id": p.id, "assessment_id": p.assessment_id, "submitted_at": p.submitted_at.isoformat()}
                        for p in same
                    ],
                },
            )
        ]
    if n >= s.repeat_medium_count:
        return [
            RiskFlag(
                type="repeated_application",
                severity="medium",
                description="Duplicate submission detected from same email",
                evidence={"count": n + 1},
            )
        ]
    return []


def detect_suspicious_timing(submission: Submission, s: IntegritySettings) -> List[RiskFlag]:
    flags: List[RiskFlag] = []
    started = submission.candidate.started_at
    n_answers = len(submission.answers)
    if started is not None and n_answers >= s.fast_min_questions:
        minutes = (submission.submitted_at - started).total_seconds() / 60.0
        if minutes < s.fast_total_minutes:
            flags.append(
                RiskFlag(
                    type="suspicious_timing",
                    severity="high",
                    description=f"Assessment completed in {round_half_up(minutes)} minutes (suspiciously fast)",
                    evidence={
                        "time_spent_minutes": round_half_up(minutes),
                        "question_count": n_answers,
                        "avg_seconds_per_question": round_half_up(minutes * 60 / n_answers),
                    },
                )
            )

    times = list(submission.anti_cheat.question_times.values())
    avg = mean(times)
    if times and avg > 0:
        fast = sum(1 for t in times if t < avg * s.fast_question_ratio)
        if fast > len(times) * s.fast_question_share:
            flags.append(
                RiskFlag(
                    type="suspicious_timing",
                    severity="medium",
                    description="Many questions answered suspiciously fast",
                    evidence={"fast_answers": fast, "total_answers": len(times)},
                )
            )
    return flags


def detect_guess_pattern(
    submission: Submission, questions: Sequence[Question], s: IntegritySettings
) -> List[RiskFlag]:
    picks = _mcq_selections(submission, questions)
    if len(picks) < s.guess_min_mcq:
        return []
    flags: List[RiskFlag] = []
    counts = Counter(picks)
    top = max(counts.values())
    share = top / len(picks)
    if share > s.guess_skew_ratio:
        flags.append(
            RiskFlag(
                type="guess_pattern",
                severity="medium",
                description=f"Suspicious answer pattern detected ({round_half_up(share * 100)}% same option)",
                evidence={"option_distribution": {str(k): v for k, v in sorted(counts.items())}, "total_mcqs": len(picks)},
            )
        )
    pairs = len(picks) - 1
    alternating = sum(1 for a, b in zip(picks, picks[1:]) if abs(a - b) == 1)
    if pairs and alternating / pairs >= s.guess_alternating_ratio:
        flags.append(
            RiskFlag(
                type="guess_pattern",
                severity="low",
                description="Alternating answer pattern detected (possible guessing)",
                evidence={"alternating_ratio": round(alternating / pairs, 3)},
            )
        )
    return flags


def detect_identical_responses(
    submission: Submission, cohort: Sequence[Submission], questions: Sequence[Question], s: IntegritySettings
) -> List[RiskFlag]:
    peers = [p for p in cohort if p.id != submission.id and p.assessment_id == submission.assessment_id]
    if len(peers) < s.identical_min_peers:
        return []
    hits = 0
    for q in questions:
        if q.type != "mcq":
            continue
        ans = submission.answers.get(q.id)
        mine = getattr(ans.response, "selected_option", None) if ans else None
        if mine is None:
            continue
        same = 0
        for p in peers:
            other = p.answers.get(q.id)
            if other is not None and getattr(other.response, "selected_option", None) == mine:
                same += 1
        if same >= s.identical_min_peers:
            hits += 1
    if hits >= s.identical_min_questions:
        return [
            RiskFlag(
                type="identical_responses",
                severity="high",
                description=f"Identical responses to other candidates on {hits} questions",
                evidence={"identical_questions": hits},
            )
        ]
    return []


def detect_telemetry(submission: Submission, s: IntegritySettings) -> List[RiskFlag]:
    flags: List[RiskFlag] = []
    tel = submission.anti_cheat
    if tel.tab_switches >= s.tab_switch_limit:
        flags.append(
            RiskFlag(
                type="pattern_detection",
                severity="low",
                description=f"Left the assessment window {tel.tab_switches} times",
                evidence={"tab_switches": tel.tab_switches},
            )
        )
    if tel.copy_paste_detected:
        flags.append(
            RiskFlag(
                type="pattern_detection",
                severity="low",
                description="Copy/paste activity detected during the assessment",
                evidence={"copy_paste_detected": True},
            )
        )
    return flags


def aggregate(flags: List[RiskFlag], s: IntegritySettings) -> BotRiskReport:
    risk = min(100, sum(s.weight(f.severity) for f in flags))
    return BotRiskReport(
        flags=flags,
        risk_score=risk,
        is_bot=risk >= s.bot_risk_threshold or any(f.severity == "high" for f in flags),
        confidence=min(100, risk + s.confidence_per_flag * len(flags)),
    )


def assess(
    submission: Submission,
    cohort: Sequence[Submission],
    questions: Sequence[Question],
    settings: IntegritySettings | None = None,
) -> BotRiskReport:
    s = settings or IntegritySettings()
    flags: List[RiskFlag] = []
    flags += detect_repeated_application(submission, cohort, s)
    flags += detect_suspicious_timing(submission, s)
    flags += detect_guess_pattern(submission, questions, s)
    flags += detect_identical_responses(submission, cohort, questions, s)
    flags += detect_telemetry(submission, s)
    report = aggregate(flags, s)
    if report.is_bot:
        log.warning(
            "submission %s flagged as likely automated (risk=%d, flags=%s)",
            submission.id, report.risk_score, ",".join(f.type for f in flags),
        )
    return report
