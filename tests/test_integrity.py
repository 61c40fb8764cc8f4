from __future__ import annotations

from datetime import timedelta

from assess_core.config import IntegritySettings, settings_for_assessment
from assess_core.integrity import aggregate, assess
from assess_core.records import to_basic
from assess_core.types import RiskFlag
from tests.conftest import T0, build_submission, mcq, sel


def _mcq_bank(n: int, options=("A", "B", "C", "D")):
    return [mcq(f"m{i}", correct=0, options=options) for i in range(n)]


def _answers(picks):
    return {f"m{i}": sel(p) for i, p in enumerate(picks)}


def _types(report):
    return [(f.type, f.severity) for f in report.flags]


def test_fast_completion_is_high_severity():
    bank = _mcq_bank(15)
    sub = build_submission("s1", _answers([i % 4 for i in range(15)]), started_at=T0, submitted_at=T0 + timedelta(minutes=3))

    report = assess(sub, [], bank)

    assert ("suspicious_timing", "high") in _types(report)
    assert report.risk_score >= 30
    assert report.is_bot is True


def test_fast_completion_needs_ten_answers():
    bank = _mcq_bank(10)
    ten = build_submission("s1", _answers([0, 1, 2, 3, 2, 2, 0, 3, 1, 3]), submitted_at=T0 + timedelta(minutes=4))
    nine = build_submission("s2", _answers([0, 1, 2, 3, 2, 2, 0, 3, 1]), submitted_at=T0 + timedelta(minutes=4))
    assert ("suspicious_timing", "high") in _types(assess(ten, [], bank))
    assert ("suspicious_timing", "high") not in _types(assess(nine, [], bank))


def test_many_fast_questions_is_medium():
    sub = build_submission("s1", {}, question_times={"a": 100, "b": 100, "c": 1, "d": 1, "e": 1})
    assert _types(assess(sub, [], [])) == [("suspicious_timing", "medium")]


def test_repeated_application_by_email():
    sub = build_submission("s1", {}, email="Dup@Example.com")
    one = build_submission("s2", {}, email="dup@example.com")
    many = [build_submission(f"r{i}", {}, email="DUP@example.com") for i in range(3)]

    medium = assess(sub, [sub, one], [])
    high = assess(sub, [sub] + many, [])

    assert _types(medium) == [("repeated_application", "medium")]
    assert medium.flags[0].evidence["count"] == 2
    assert _types(high) == [("repeated_application", "high")]
    assert high.flags[0].evidence["count"] == 4
    assert _types(assess(sub, [sub], [])) == []


def test_skewed_option_distribution():
    bank = _mcq_bank(5)
    report = assess(build_submission("s1", _answers([0, 0, 0, 0, 0])), [], bank)
    assert _types(report) == [("guess_pattern", "medium")]
    assert report.flags[0].evidence["total_mcqs"] == 5


def test_skew_counts_options_beyond_four():
    bank = _mcq_bank(5, options=tuple("ABCDEF"))
    report = assess(build_submission("s1", _answers([5, 5, 5, 5, 2])), [], bank)
    assert ("guess_pattern", "medium") in _types(report)


def test_alternating_pattern_is_low():
    bank = _mcq_bank(6)
    report = assess(build_submission("s1", _answers([0, 1, 0, 1, 0, 1])), [], bank)
    assert _types(report) == [("guess_pattern", "low")]


def test_guess_checks_need_five_mcqs():
    bank = _mcq_bank(4)
    assert assess(build_submission("s1", _answers([0, 0, 0, 0])), [], bank).flags == []


def test_identical_responses_across_cohort():
    bank = _mcq_bank(3)
    picks = [2, 3, 1]
    sub = build_submission("s1", _answers(picks))
    five = [build_submission(f"p{i}", _answers(picks)) for i in range(5)]
    four = five[:4]
    elsewhere = [build_submission(f"x{i}", _answers(picks), assessment_id="a2") for i in range(5)]

    assert _types(assess(sub, [sub] + five, bank)) == [("identical_responses", "high")]
    assert assess(sub, [sub] + four, bank).flags == []
    assert assess(sub, [sub] + four + elsewhere, bank).flags == []


def test_unanswered_mcqs_are_not_collisions():
    bank = _mcq_bank(3)
    sub = build_submission("s1", {})
    peers = [build_submission(f"p{i}", {}) for i in range(6)]
    assert assess(sub, [sub] + peers, bank).flags == []


def test_telemetry_flags():
    assert _types(assess(build_submission("s1", {}, tab_switches=10), [], [])) == [("pattern_detection", "low")]
    assert assess(build_submission("s2", {}, tab_switches=9), [], []).flags == []
    assert _types(assess(build_submission("s3", {}, copy_paste=True), [], [])) == [("pattern_detection", "low")]


def test_flags_follow_detector_order():
    sub = build_submission("s1", {}, email="a@b.c", tab_switches=12)
    peer = build_submission("s2", {}, email="a@b.c")
    assert [f.type for f in assess(sub, [peer], []).flags] == ["repeated_application", "pattern_detection"]


def test_aggregation_weights_and_confidence():
    s = IntegritySettings()
    low_mix = aggregate([RiskFlag("t", "medium", ""), RiskFlag("t", "medium", ""), RiskFlag("t", "low", ""), RiskFlag("t", "low", "")], s)
    assert (low_mix.risk_score, low_mix.is_bot, low_mix.confidence) == (40, False, 60)

    at_threshold = aggregate([RiskFlag("t", "medium", "")] * 4, s)
    assert (at_threshold.risk_score, at_threshold.is_bot) == (60, True)

    one_high = aggregate([RiskFlag("t", "high", "")], s)
    assert (one_high.risk_score, one_high.is_bot, one_high.confidence) == (30, True, 35)

    capped = aggregate([RiskFlag("t", "high", "")] * 5, s)
    assert (capped.risk_score, capped.confidence) == (100, 100)

    clean = aggregate([], s)
    assert (clean.risk_score, clean.is_bot, clean.confidence) == (0, False, 0)


def test_assess_is_idempotent():
    bank = _mcq_bank(6)
    sub = build_submission("s1", _answers([0, 1, 0, 1, 0, 1]), tab_switches=11, question_times={"m0": 50, "m1": 1, "m2": 1})
    cohort = [sub] + [build_submission(f"p{i}", _answers([0, 1, 0, 1, 0, 1])) for i in range(6)]
    assert to_basic(assess(sub, cohort, bank)) == to_basic(assess(sub, cohort, bank))


def test_thresholds_overridable_per_assessment():
    cfg = {"TAB_SWITCH_LIMIT": 10, "assessments": {"a1": {"TAB_SWITCH_LIMIT": 3, "GUESS_SKEW_RATIO": 0.9}}}
    strict = settings_for_assessment(cfg, "a1").integrity
    default = settings_for_assessment(cfg, "a2").integrity
    assert (strict.tab_switch_limit, strict.guess_skew_ratio) == (3, 0.9)
    assert default.tab_switch_limit == 10

    sub = build_submission("s1", {}, tab_switches=4)
    assert _types(assess(sub, [], [], strict)) == [("pattern_detection", "low")]
    assert assess(sub, [], [], default).flags == []
