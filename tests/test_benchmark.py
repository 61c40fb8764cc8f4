from __future__ import annotations

import pytest

from assess_core.benchmark import INSUFFICIENT_DATA, compare, overall_status, percentile_rank, recommendations
from assess_core.config import BenchmarkSettings
from assess_core.types import CodingSection, McqSection, ScoreRecord, SkillComparison, SkillScore, SubjectiveSection


def _rec(pct: int, **skills: int) -> ScoreRecord:
    return ScoreRecord(
        total_score=pct,
        total_possible=100,
        percentage=pct,
        mcq=McqSection(),
        subjective=SubjectiveSection(),
        coding=CodingSection(),
        skill_scores={k: SkillScore(score=v, total=100, percentage=v) for k, v in skills.items()},
    )


COHORT = [40, 45, 50, 55, 60, 65, 70, 75, 80, 95]


def test_cohort_distribution_and_top_performer_boundary():
    cohort = [_rec(p) for p in COHORT]
    candidate = cohort[8]  # 80%

    res = compare(candidate, cohort)

    assert res.stats.percentile == 90
    assert res.overall_status == "top_performer"
    assert (res.stats.average, res.stats.median, res.stats.top10_percent, res.stats.top25_percent) == (64, 60, 80, 75)
    assert res.stats.sample_size == 10
    assert res.recommendations[0] == "Excellent performance! You rank in the top 10% of candidates."
    assert res.candidate_percentage == 80


def test_status_thresholds_are_inclusive():
    assert overall_status(89) == "above_average"
    assert overall_status(90) == "top_performer"
    assert overall_status(60) == "above_average"
    assert overall_status(59) == "average"
    assert overall_status(40) == "average"
    assert overall_status(39) == "below_average"


def test_strong_and_weak_percentile_messages():
    cohort = [_rec(p) for p in COHORT]
    strong = compare(cohort[7], cohort)  # 75% -> 8 of 10
    weak = compare(cohort[1], cohort)  # 45% -> 2 of 10
    assert strong.stats.percentile == 80
    assert strong.recommendations == ["Strong performance. You rank above 75% of candidates."]
    assert weak.overall_status == "below_average"
    assert weak.recommendations == ["Performance is below average. Focus on improving core skills."]


def test_percentile_is_inclusive():
    assert percentile_rank(95, COHORT) == 100
    assert percentile_rank(39, COHORT) == 0
    assert percentile_rank(50, [50, 50, 50, 100]) == 75
    assert percentile_rank(10, []) == 0


def test_empty_cohort_is_not_an_error():
    res = compare(_rec(72), [])
    assert res.stats.percentile == 0
    assert res.stats.sample_size == 0
    assert res.overall_status == "average"
    assert res.recommendations == [INSUFFICIENT_DATA]
    assert (res.candidate_score, res.candidate_percentage) == (72, 72)


def test_single_member_cohort_ranks_at_top():
    me = _rec(30)
    res = compare(me, [me])
    assert res.stats.percentile == 100
    assert res.stats.top10_percent == res.stats.top25_percent == res.stats.median == 30


def test_zero_scores_count_toward_distribution():
    cohort = [_rec(0), _rec(0), _rec(50)]
    res = compare(cohort[2], cohort)
    assert res.stats.sample_size == 3
    assert res.stats.average == 17


def test_skill_comparison_statuses_and_order():
    me = _rec(55, python=90, sql=40, rust=50)
    cohort = [_rec(50, python=50, sql=80), _rec(60, python=60, sql=70), me]

    res = compare(me, cohort)
    rows = {r.skill: r for r in res.skill_comparison}

    assert [r.skill for r in res.skill_comparison] == ["python", "rust", "sql"]
    assert rows["python"].status == "above_average"
    assert rows["python"].benchmark_average == 67
    assert rows["python"].benchmark_top10 == 90
    assert rows["sql"].status == "below_average"
    assert rows["sql"].percentile == 33
    assert rows["rust"].status == "average"
    assert res.stats.percentile == 67
    assert res.recommendations == ["Focus on improving: sql", "Your strengths: python"]


def test_skills_without_cohort_data_are_skipped():
    me = _rec(55, python=90, rust=50)
    res = compare(me, [_rec(50, python=50)])
    assert [r.skill for r in res.skill_comparison] == ["python"]


@pytest.mark.parametrize("status, prefix", [("below_average", "Focus on improving: "), ("above_average", "Your strengths: ")])
def test_recommendations_name_at_most_three_skills(status, prefix):
    rows = [SkillComparison(skill=s, candidate_score=0, benchmark_average=0, benchmark_top10=0, percentile=60, status=status) for s in "abcde"]
    out = recommendations(60, rows, BenchmarkSettings())
    assert out == [prefix + "a, b, c"]
