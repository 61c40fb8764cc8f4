from __future__ import annotations
import os, json, pathlib
from dataclasses import dataclass
from typing import Any, Mapping


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


# scoring
SUBJECTIVE_MIN_CHARS: int = 10
SUBJECTIVE_TIERS: tuple[tuple[int, float], ...] = ((50, 0.30), (150, 0.60))
SUBJECTIVE_CAP_RATIO: float = 0.80
CODING_MIN_CHARS: int = 20
CODING_PARTICIPATION_RATIO: float = 0.30

# similarity
TEXT_SIM_THRESHOLD: int = 70
CODE_SIM_THRESHOLD: int = 80
TEXT_MIN_CHARS: int = 20
CODE_MIN_CHARS: int = 30
TEXT_WORD_WEIGHT: float = 0.60
CODE_TOKEN_WEIGHT: float = 0.50
SIMILARITY_TOP_N: int = 5
SIMILARITY_MAX_PEERS: int = 500

# integrity
REPEAT_HIGH_COUNT: int = 3
REPEAT_MEDIUM_COUNT: int = 1
FAST_MIN_QUESTIONS: int = 10
FAST_TOTAL_MINUTES: float = 5.0
FAST_QUESTION_RATIO: float = 0.20
FAST_QUESTION_SHARE: float = 0.50
GUESS_MIN_MCQ: int = 5
GUESS_SKEW_RATIO: float = 0.60
GUESS_ALTERNATING_RATIO: float = 0.70
IDENTICAL_MIN_PEERS: int = 5
IDENTICAL_MIN_QUESTIONS: int = 3
TAB_SWITCH_LIMIT: int = 10
SEVERITY_WEIGHTS: dict[str, int] = {"high": 30, "medium": 15, "low": 5}
BOT_RISK_THRESHOLD: int = 50
CONFIDENCE_PER_FLAG: int = 5

# benchmark
SKILL_ABOVE_RATIO: float = 1.10
SKILL_BELOW_RATIO: float = 0.90
STATUS_TOP_PERCENTILE: int = 90
STATUS_ABOVE_PERCENTILE: int = 60
STATUS_AVERAGE_PERCENTILE: int = 40
RECOMMEND_SKILLS_MAX: int = 3

# remote grader
GRADER_BACKEND: str = "none"
GRADER_TIMEOUT_SEC: float = 20.0
GRADER_DEADLINE_SEC: float = 60.0
GRADER_MODEL: str = "openai/gpt-3.5-turbo"
GRADER_LOG_PATH: str = ""

# store
DATA_DIR: str = "data"
PERSIST_RETRIES: int = 3
# // env overrides for staging/ops; defaults remain conservative.
SIMILARITY_MAX_PEERS = _env_int("SIMILARITY_MAX_PEERS", SIMILARITY_MAX_PEERS)
GRADER_BACKEND = (os.getenv("GRADER_BACKEND") or GRADER_BACKEND).strip().lower()
GRADER_TIMEOUT_SEC = _env_float("GRADER_TIMEOUT_SEC", GRADER_TIMEOUT_SEC)
GRADER_DEADLINE_SEC = _env_float("GRADER_DEADLINE_SEC", GRADER_DEADLINE_SEC)
GRADER_MODEL = os.getenv("GRADER_MODEL", GRADER_MODEL)
GRADER_LOG_PATH = os.getenv("GRADER_LOG_PATH", GRADER_LOG_PATH)
PERSIST_RETRIES = max(1, _env_int("PERSIST_RETRIES", PERSIST_RETRIES))
TAB_SWITCH_LIMIT = _env_int("TAB_SWITCH_LIMIT", TAB_SWITCH_LIMIT)


def load_config(path: str = "config.json") -> dict:
    """Merge ``config.json`` (if present) with environment overrides."""
    cfg: dict = {}
    p = pathlib.Path(path)
    if p.exists():
        try:
            cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            cfg = {}
    e = os.environ
    if e.get("GRADER_BACKEND"): cfg["GRADER_BACKEND"] = e["GRADER_BACKEND"].strip().lower()
    if e.get("GRADER_MODEL"): cfg["GRADER_MODEL"] = e["GRADER_MODEL"]
    if e.get("GRADER_TIMEOUT_SEC"): cfg["GRADER_TIMEOUT_SEC"] = _env_float("GRADER_TIMEOUT_SEC", GRADER_TIMEOUT_SEC)
    if e.get("GRADER_DEADLINE_SEC"): cfg["GRADER_DEADLINE_SEC"] = _env_float("GRADER_DEADLINE_SEC", GRADER_DEADLINE_SEC)
    if e.get("DATA_DIR"): cfg["DATA_DIR"] = e["DATA_DIR"]
    for k in ("OPENAI_BASE_URL","OPENAI_API_KEY","AZURE_OPENAI_ENDPOINT","AZURE_OPENAI_API_KEY",
              "AZURE_OPENAI_API_VERSION","AZURE_OPENAI_DEPLOYMENT"):
        if e.get(k): cfg[k] = e.get(k)
    return cfg


def _cfg_value(cfg: Mapping[str, Any] | None, name: str, default: Any) -> Any:
    if cfg is None:
        return default
    if isinstance(cfg, Mapping) and name in cfg:
        return cfg[name]
    return default


@dataclass(frozen=True)
class ScoringSettings:
    subjective_min_chars: int = SUBJECTIVE_MIN_CHARS
    subjective_tiers: tuple[tuple[int, float], ...] = SUBJECTIVE_TIERS
    subjective_cap_ratio: float = SUBJECTIVE_CAP_RATIO
    coding_min_chars: int = CODING_MIN_CHARS
    coding_participation_ratio: float = CODING_PARTICIPATION_RATIO

    @staticmethod
    def from_cfg(cfg: Mapping[str, Any] | None) -> "ScoringSettings":
        tiers = _cfg_value(cfg, "SUBJECTIVE_TIERS", SUBJECTIVE_TIERS)
        return ScoringSettings(
            subjective_min_chars=int(_cfg_value(cfg, "SUBJECTIVE_MIN_CHARS", SUBJECTIVE_MIN_CHARS)),
            subjective_tiers=tuple((int(lim), float(ratio)) for lim, ratio in tiers),
            subjective_cap_ratio=float(_cfg_value(cfg, "SUBJECTIVE_CAP_RATIO", SUBJECTIVE_CAP_RATIO)),
            coding_min_chars=int(_cfg_value(cfg, "CODING_MIN_CHARS", CODING_MIN_CHARS)),
            coding_participation_ratio=float(
                _cfg_value(cfg, "CODING_PARTICIPATION_RATIO", CODING_PARTICIPATION_RATIO)
            ),
        )


@dataclass(frozen=True)
class SimilaritySettings:
    text_threshold: int = TEXT_SIM_THRESHOLD
    code_threshold: int = CODE_SIM_THRESHOLD
    text_min_chars: int = TEXT_MIN_CHARS
    code_min_chars: int = CODE_MIN_CHARS
    text_word_weight: float = TEXT_WORD_WEIGHT
    code_token_weight: float = CODE_TOKEN_WEIGHT
    top_n: int = SIMILARITY_TOP_N
    max_peers: int = SIMILARITY_MAX_PEERS

    @staticmethod
    def from_cfg(cfg: Mapping[str, Any] | None) -> "SimilaritySettings":
        return SimilaritySettings(
            text_threshold=int(_cfg_value(cfg, "TEXT_SIM_THRESHOLD", TEXT_SIM_THRESHOLD)),
            code_threshold=int(_cfg_value(cfg, "CODE_SIM_THRESHOLD", CODE_SIM_THRESHOLD)),
            text_min_chars=int(_cfg_value(cfg, "TEXT_MIN_CHARS", TEXT_MIN_CHARS)),
            code_min_chars=int(_cfg_value(cfg, "CODE_MIN_CHARS", CODE_MIN_CHARS)),
            text_word_weight=float(_cfg_value(cfg, "TEXT_WORD_WEIGHT", TEXT_WORD_WEIGHT)),
            code_token_weight=float(_cfg_value(cfg, "CODE_TOKEN_WEIGHT", CODE_TOKEN_WEIGHT)),
            top_n=int(_cfg_value(cfg, "SIMILARITY_TOP_N", SIMILARITY_TOP_N)),
            max_peers=int(_cfg_value(cfg, "SIMILARITY_MAX_PEERS", SIMILARITY_MAX_PEERS)),
        )


@dataclass(frozen=True)
class IntegritySettings:
    repeat_high_count: int = REPEAT_HIGH_COUNT
    repeat_medium_count: int = REPEAT_MEDIUM_COUNT
    fast_min_questions: int = FAST_MIN_QUESTIONS
    fast_total_minutes: float = FAST_TOTAL_MINUTES
    fast_question_ratio: float = FAST_QUESTION_RATIO
    fast_question_share: float = FAST_QUESTION_SHARE
    guess_min_mcq: int = GUESS_MIN_MCQ
    guess_skew_ratio: float = GUESS_SKEW_RATIO
    guess_alternating_ratio: float = GUESS_ALTERNATING_RATIO
    identical_min_peers: int = IDENTICAL_MIN_PEERS
    identical_min_questions: int = IDENTICAL_MIN_QUESTIONS
    tab_switch_limit: int = TAB_SWITCH_LIMIT
    weight_high: int = SEVERITY_WEIGHTS["high"]
    weight_medium: int = SEVERITY_WEIGHTS["medium"]
    weight_low: int = SEVERITY_WEIGHTS["low"]
    bot_risk_threshold: int = BOT_RISK_THRESHOLD
    confidence_per_flag: int = CONFIDENCE_PER_FLAG

    def weight(self, severity: str) -> int:
        if severity == "high":
            return self.weight_high
        if severity == "medium":
            return self.weight_medium
        return self.weight_low

    @staticmethod
    def from_cfg(cfg: Mapping[str, Any] | None) -> "IntegritySettings":
        weights = dict(SEVERITY_WEIGHTS)
        weights.update(_cfg_value(cfg, "SEVERITY_WEIGHTS", {}) or {})
        return IntegritySettings(
            repeat_high_count=int(_cfg_value(cfg, "REPEAT_HIGH_COUNT", REPEAT_HIGH_COUNT)),
            repeat_medium_count=int(_cfg_value(cfg, "REPEAT_MEDIUM_COUNT", REPEAT_MEDIUM_COUNT)),
            fast_min_questions=int(_cfg_value(cfg, "FAST_MIN_QUESTIONS", FAST_MIN_QUESTIONS)),
            fast_total_minutes=float(_cfg_value(cfg, "FAST_TOTAL_MINUTES", FAST_TOTAL_MINUTES)),
            fast_question_ratio=float(_cfg_value(cfg, "FAST_QUESTION_RATIO", FAST_QUESTION_RATIO)),
            fast_question_share=float(_cfg_value(cfg, "FAST_QUESTION_SHARE", FAST_QUESTION_SHARE)),
            guess_min_mcq=int(_cfg_value(cfg, "GUESS_MIN_MCQ", GUESS_MIN_MCQ)),
            guess_skew_ratio=float(_cfg_value(cfg, "GUESS_SKEW_RATIO", GUESS_SKEW_RATIO)),
            guess_alternating_ratio=float(
                _cfg_value(cfg, "GUESS_ALTERNATING_RATIO", GUESS_ALTERNATING_RATIO)
            ),
            identical_min_peers=int(_cfg_value(cfg, "IDENTICAL_MIN_PEERS", IDENTICAL_MIN_PEERS)),
            identical_min_questions=int(
                _cfg_value(cfg, "IDENTICAL_MIN_QUESTIONS", IDENTICAL_MIN_QUESTIONS)
            ),
            tab_switch_limit=int(_cfg_value(cfg, "TAB_SWITCH_LIMIT", TAB_SWITCH_LIMIT)),
            weight_high=int(weights["high"]),
            weight_medium=int(weights["medium"]),
            weight_low=int(weights["low"]),
            bot_risk_threshold=int(_cfg_value(cfg, "BOT_RISK_THRESHOLD", BOT_RISK_THRESHOLD)),
            confidence_per_flag=int(_cfg_value(cfg, "CONFIDENCE_PER_FLAG", CONFIDENCE_PER_FLAG)),
        )


@dataclass(frozen=True)
class BenchmarkSettings:
    skill_above_ratio: float = SKILL_ABOVE_RATIO
    skill_below_ratio: float = SKILL_BELOW_RATIO
    top_percentile: int = STATUS_TOP_PERCENTILE
    above_percentile: int = STATUS_ABOVE_PERCENTILE
    average_percentile: int = STATUS_AVERAGE_PERCENTILE
    recommend_skills_max: int = RECOMMEND_SKILLS_MAX

    @staticmethod
    def from_cfg(cfg: Mapping[str, Any] | None) -> "BenchmarkSettings":
        return BenchmarkSettings(
            skill_above_ratio=float(_cfg_value(cfg, "SKILL_ABOVE_RATIO", SKILL_ABOVE_RATIO)),
            skill_below_ratio=float(_cfg_value(cfg, "SKILL_BELOW_RATIO", SKILL_BELOW_RATIO)),
            top_percentile=int(_cfg_value(cfg, "STATUS_TOP_PERCENTILE", STATUS_TOP_PERCENTILE)),
            above_percentile=int(_cfg_value(cfg, "STATUS_ABOVE_PERCENTILE", STATUS_ABOVE_PERCENTILE)),
            average_percentile=int(
                _cfg_value(cfg, "STATUS_AVERAGE_PERCENTILE", STATUS_AVERAGE_PERCENTILE)
            ),
            recommend_skills_max=int(_cfg_value(cfg, "RECOMMEND_SKILLS_MAX", RECOMMEND_SKILLS_MAX)),
        )


@dataclass(frozen=True)
class Settings:
    scoring: ScoringSettings = ScoringSettings()
    similarity: SimilaritySettings = SimilaritySettings()
    integrity: IntegritySettings = IntegritySettings()
    benchmark: BenchmarkSettings = BenchmarkSettings()
    persist_retries: int = PERSIST_RETRIES

    @staticmethod
    def from_cfg(cfg: Mapping[str, Any] | None) -> "Settings":
        return Settings(
            scoring=ScoringSettings.from_cfg(cfg),
            similarity=SimilaritySettings.from_cfg(cfg),
            integrity=IntegritySettings.from_cfg(cfg),
            benchmark=BenchmarkSettings.from_cfg(cfg),
            persist_retries=max(1, int(_cfg_value(cfg, "PERSIST_RETRIES", PERSIST_RETRIES))),
        )


def settings_for_assessment(cfg: Mapping[str, Any] | None, assessment_id: str) -> Settings:
    """Build settings with the ``assessments.<id>`` block layered over the base config.

    Operators recalibrate thresholds per assessment difficulty or cohort size here.
    """
    base = dict(cfg or {})
    overrides = (base.pop("assessments", None) or {}).get(assessment_id) or {}
    base.update(overrides)
    return Settings.from_cfg(base)


