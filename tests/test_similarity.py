from __future__ import annotations

from datetime import timedelta

from assess_core.config import SimilaritySettings
from assess_core.similarity import (
    check_submission,
    code_similarity,
    compare_code,
    compare_text,
    levenshtein,
    normalize_code,
    normalize_text,
    text_similarity,
)
from tests.conftest import T0, build_question_bank, build_submission, code_answer, text

WORDS = (
    "database indexes speed lookups because the engine walks balanced trees instead "
    "scanning every row which matters when tables grow large under heavy production traffic"
)
CODE_A = "def add(a, b):\n    # sum two values\n    return a + b + 10\n"
CODE_B = "def add(a, b):\n    return a + b + 42  // different literal\n"


def _peer(sid, answer, minutes=0, assessment_id="a1", qid="q4"):
    return build_submission(
        sid, {qid: answer}, assessment_id=assessment_id, submitted_at=T0 + timedelta(hours=1, minutes=minutes)
    )


def test_normalizers():
    assert normalize_text("  Hello,   World!! ") == "hello world"
    assert normalize_code("x = 123 + 4") == "x = N + N"
    assert normalize_code("s = 'a'  /* block\ncomment */ // tail") == 's = "a"'
    assert normalize_code("y = 1  # trailing") == "y = N"


def test_levenshtein():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("same", "same") == 0


def test_long_answers_compare_exactly():
    base = " ".join(f"word{i}" for i in range(800))
    edited = base[:-10] + "x" * 10
    assert len(base) > 5000
    assert levenshtein(base, edited) == 10
    assert text_similarity(base, edited) >= 99


def test_text_similarity_exact_after_normalization():
    assert text_similarity("Hello, World! It is me.", "hello world it is me") == 100
    assert text_similarity("", "anything") == 0


def test_similarity_is_symmetric():
    pairs = [
        (WORDS, WORDS + " indeed"),
        ("short answer about caching layers", "a longer answer about caching and queues"),
        ("alpha beta gamma", "delta epsilon"),
    ]
    for a, b in pairs:
        assert text_similarity(a, b) == text_similarity(b, a)
        assert code_similarity(a, b) == code_similarity(b, a)
    assert code_similarity(CODE_A, CODE_B + "print(add(1, 2))") == code_similarity(CODE_B + "print(add(1, 2))", CODE_A)


def test_near_copied_text_is_flagged():
    mine = _peer("s1", text(WORDS))
    copy = _peer("s2", text(WORDS + " indeed"))

    res = compare_text(mine, "q4", [mine, copy])

    assert res.flagged is True
    assert res.similarity_score >= 70
    assert [m.peer_submission_id for m in res.matches] == ["s2"]
    assert res.matches[0].peer_email == "s2@example.com"


def test_code_comments_and_literals_are_ignored():
    mine = _peer("s1", code_answer(CODE_A), qid="q5")
    other = _peer("s2", code_answer(CODE_B), qid="q5")
    res = compare_code(mine, "q5", [other])
    assert res.similarity_score == 100
    assert res.flagged is True


def test_short_content_is_not_compared():
    mine = _peer("s1", text("too short"))
    twin = _peer("s2", text("too short"))
    res = compare_text(mine, "q4", [twin])
    assert (res.similarity_score, res.flagged, res.matches) == (0, False, [])


def test_short_peers_are_skipped():
    mine = _peer("s1", text(WORDS))
    res = compare_text(mine, "q4", [_peer("s2", text("tiny")), _peer("s3", text(""))])
    assert res.similarity_score == 0


def test_self_and_other_assessments_are_excluded():
    mine = _peer("s1", text(WORDS))
    elsewhere = _peer("s9", text(WORDS), assessment_id="other")
    res = compare_text(mine, "q4", [mine, elsewhere])
    assert res.similarity_score == 0
    assert res.matches == []


def test_matches_capped_at_five_and_sorted():
    mine = _peer("s1", text(WORDS))
    peers = [_peer(f"p{i}", text(WORDS), minutes=i) for i in range(7)]
    peers.append(_peer("near", text(WORDS + " indeed"), minutes=9))
    res = compare_text(mine, "q4", peers)
    assert len(res.matches) == 5
    assert res.similarity_score == 100
    sims = [m.similarity for m in res.matches]
    assert sims == sorted(sims, reverse=True)


def test_score_reports_best_peer_below_threshold():
    mine = _peer("s1", text(WORDS))
    other = _peer("s2", text("caching answers with redis keeps hot keys in memory for fast reads"))
    res = compare_text(mine, "q4", [other])
    assert 0 < res.similarity_score < 70
    assert res.flagged is False
    assert res.matches == []


def test_explicit_threshold_overrides_default():
    mine = _peer("s1", text(WORDS))
    other = _peer("s2", text("caching answers with redis keeps hot keys in memory for fast reads"))
    res = compare_text(mine, "q4", [other], threshold=1)
    assert res.flagged is True
    assert len(res.matches) == 1


def test_cohort_bounded_to_most_recent_peers():
    mine = _peer("s1", text(WORDS))
    peers = [_peer(f"p{i}", text(WORDS), minutes=i) for i in range(4)]
    res = compare_text(mine, "q4", peers, settings=SimilaritySettings(max_peers=2))
    assert sorted(m.peer_submission_id for m in res.matches) == ["p2", "p3"]


def test_check_submission_covers_open_questions_only():
    bank = build_question_bank()
    mine = build_submission("s1", {"q4": text(WORDS), "q5": code_answer(CODE_A)})
    peer = build_submission("s2", {"q4": text(WORDS), "q5": code_answer(CODE_B)})
    out = check_submission(mine, bank, [mine, peer])
    assert set(out) == {"q4", "q5"}
    assert out["q4"].flagged and out["q5"].flagged
