from __future__ import annotations
import logging
from typing import Dict, List, Sequence

from .config import BenchmarkSettings
from .types import BenchmarkComparison, CohortStats, OverallStatus, ScoreRecord, SkillComparison, SkillStatus
from .utils import mean, round_half_up

log = logging.getLogger(__name__)

INSUFFICIENT_DATA = "Insufficient data for benchmark comparison"


def percentile_rank(value: float, values: Sequence[float]) -> int:
    """Share of ``values`` at or below ``value``, as a rounded percentage."""
    if not values:
        return 0
    at_or_below = sum(1 for v in values if v <= value)
    return round_half_up(100.0 * at_or_below / len(values))


def _rank_at(desc: Sequence[float], fraction: float) -> float:
    # rank index past the end clamps to the best value
    if not desc:
        return 0
    idx = int(len(desc) * fraction)
    return desc[idx] if idx < len(desc) else desc[0]


def cohort_stats(candidate_percentage: float, percentages: Sequence[float]) -> CohortStats:
    if not percentages:
        return CohortStats()
    desc = sorted(percentages, reverse=True)
    return CohortStats(
        average=round_half_up(mean(percentages)),
        median=round_half_up(desc[len(desc) // 2]),
        top10_percent=round_half_up(_rank_at(desc, 0.10)),
        top25_percent=round_half_up(_rank_at(desc, 0.25)),
        percentile=percentile_rank(candidate_percentage, percentages),
        sample_size=len(percentages),
    )


def _skill_status(value: float, avg: float, s: BenchmarkSettings) -> SkillStatus:
    if value >= avg * s.skill_above_ratio:
        return "above_average"
    if value >= avg * s.skill_below_ratio:
        return "average"
    return "below_average"


def compare_skills(
    score: ScoreRecord, cohort_scores: Sequence[ScoreRecord], s: BenchmarkSettings
) -> List[SkillComparison]:
    by_skill: Dict[str, List[float]] = {}
    for rec in cohort_scores:
        for skill, data in rec.skill_scores.items():
            by_skill.setdefault(skill, []).append(data.percentage)
    rows: List[SkillComparison] = []
    for skill, data in score.skill_scores.items():
        values = by_skill.get(skill)
        if not values:
            continue
        avg = mean(values)
        desc = sorted(values, reverse=True)
        rows.append(
            SkillComparison(
                skill=skill,
                candidate_score=data.percentage,
                benchmark_average=round_half_up(avg),
                benchmark_top10=round_half_up(_rank_at(desc, 0.10)),
                percentile=percentile_rank(data.percentage, values),
                status=_skill_status(data.percentage, avg, s),
            )
        )
    rows.sort(key=lambda r: r.percentile, reverse=True)
    return rows


def overall_status(percentile: int, s: BenchmarkSettings | None = None) -> OverallStatus:
    s = s or BenchmarkSettings()
    if percentile >= s.top_percentile:
        return "top_performer"
    if percentile >= s.above_percentile:
        return "above_average"
    if percentile >= s.average_percentile:
        return "average"
    return "below_average"


def recommendations(percentile: int, skills: Sequence[SkillComparison], s: BenchmarkSettings) -> List[str]:
    out: List[str] = []
    if percentile >= 90:
        out.append("Excellent performance! You rank in the top 10% of candidates.")
    elif percentile >= 75:
        out.append("Strong performance. You rank above 75% of candidates.")
    elif percentile < 50:
        out.append("Performance is below average. Focus on improving core skills.")
    weak = [r.skill for r in skills if r.status == "below_average"][: s.recommend_skills_max]
    if weak:
        out.append(f"Focus on improving: {', '.join(weak)}")
    strong = [r.skill for r in skills if r.status == "above_average"][: s.recommend_skills_max]
    if strong:
        out.append(f"Your strengths: {', '.join(strong)}")
    return out


def compare(
    score: ScoreRecord,
    cohort_scores: Sequence[ScoreRecord],
    settings: BenchmarkSettings | None = None,
) -> BenchmarkComparison:
    """Rank ``score`` against the cohort's score records.

    ``cohort_scores`` is expected to include the candidate's own record.
    """
    s = settings or BenchmarkSettings()
    if not cohort_scores:
        return BenchmarkComparison(
            candidate_score=score.total_score,
            candidate_percentage=score.percentage,
            stats=CohortStats(),
            skill_comparison=[],
            overall_status="average",
            recommendations=[INSUFFICIENT_DATA],
        )
    stats = cohort_stats(score.percentage, [rec.percentage for rec in cohort_scores])
    skills = compare_skills(score, cohort_scores, s)
    log.debug("benchmark: percentile %d over %d scores", stats.percentile, stats.sample_size)
    return BenchmarkComparison(
        candidate_score=score.total_score,
        candidate_percentage=score.percentage,
        stats=stats,
        skill_comparison=skills,
        overall_status=overall_status(stats.percentile, s),
        recommendations=recommendations(stats.percentile, skills, s),
    )
