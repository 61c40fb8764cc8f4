from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Literal, Optional, Tuple, Union

QuestionType = Literal["mcq", "subjective", "coding"]
Difficulty = Literal["easy", "medium", "hard"]
Severity = Literal["low", "medium", "high"]
SubmissionStatus = Literal["pending", "evaluated", "shortlisted", "rejected"]
SkillStatus = Literal["above_average", "average", "below_average"]
OverallStatus = Literal["top_performer", "above_average", "average", "below_average"]


# ---- question bank ----
@dataclass(frozen=True)
class McqContent:
    question: str
    options: Tuple[str, ...]
    correct_answer: int
    explanation: Optional[str] = None


@dataclass(frozen=True)
class SubjectiveContent:
    question: str
    expected_keywords: Tuple[str, ...] = ()
    rubric: str = ""
    sample_answer: Optional[str] = None


@dataclass(frozen=True)
class CodingCase:
    input: str
    expected_output: str
    weight: float = 1.0
    is_hidden: bool = False


@dataclass(frozen=True)
class CodingContent:
    problem_statement: str
    test_cases: Tuple[CodingCase, ...] = ()
    output_format: str = ""


QuestionContent = Union[McqContent, SubjectiveContent, CodingContent]

_CONTENT_FOR_TYPE = {"mcq": McqContent, "subjective": SubjectiveContent, "coding": CodingContent}


@dataclass(frozen=True)
class Question:
    id: str
    type: QuestionType
    marks: float
    content: QuestionContent
    skill_tags: FrozenSet[str] = frozenset()
    difficulty: Difficulty = "medium"

    def __post_init__(self) -> None:
        expected = _CONTENT_FOR_TYPE.get(self.type)
        if expected is None:
            raise ValueError(f"unknown question type {self.type!r}")
        if not isinstance(self.content, expected):
            raise ValueError(f"question {self.id}: {self.type} content must be {expected.__name__}")
        if not self.marks > 0:
            raise ValueError(f"question {self.id}: marks must be positive")


# ---- candidate answers ----
@dataclass(frozen=True)
class McqResponse:
    selected_option: Optional[int] = None


@dataclass(frozen=True)
class TextResponse:
    text: str = ""


@dataclass(frozen=True)
class ExecutionResult:
    test_case_index: int
    passed: bool
    actual_output: Optional[str] = None
    error: Optional[str] = None
    execution_time_ms: float = 0.0


@dataclass(frozen=True)
class CodeResponse:
    code: str = ""
    language: str = ""
    execution_results: Tuple[ExecutionResult, ...] = ()


Response = Union[McqResponse, TextResponse, CodeResponse]


@dataclass(frozen=True)
class Answer:
    question_id: str
    response: Response
    time_spent_seconds: float = 0.0


@dataclass(frozen=True)
class CandidateInfo:
    name: str
    email: str
    user_id: Optional[str] = None
    started_at: Optional[datetime] = None


@dataclass(frozen=True)
class AntiCheatTelemetry:
    tab_switches: int = 0
    copy_paste_detected: bool = False
    question_times: Dict[str, float] = field(default_factory=dict)


# ---- scoring output ----
@dataclass
class McqSection:
    score: float = 0
    total: float = 0
    correct: int = 0
    total_questions: int = 0


@dataclass
class SubjectiveSection:
    score: float = 0
    total: float = 0
    evaluated: int = 0
    total_questions: int = 0


@dataclass
class CodingSection:
    score: float = 0
    total: float = 0
    test_cases_passed: int = 0
    total_test_cases: int = 0
    total_questions: int = 0


@dataclass
class SkillScore:
    score: float
    total: float
    percentage: int


@dataclass
class EvaluatedAnswer:
    question_id: str
    type: QuestionType
    score: float
    max_score: float
    is_correct: Optional[bool] = None
    feedback: str = ""
    test_cases_passed: int = 0
    total_test_cases: int = 0


@dataclass
class ScoreRecord:
    total_score: float
    total_possible: float
    percentage: int
    mcq: McqSection
    subjective: SubjectiveSection
    coding: CodingSection
    skill_scores: Dict[str, SkillScore] = field(default_factory=dict)
    evaluated_answers: List[EvaluatedAnswer] = field(default_factory=list)
    source: Literal["heuristic", "remote"] = "heuristic"


# ---- plagiarism ----
@dataclass
class SimilarityMatch:
    peer_submission_id: str
    peer_name: str
    peer_email: str
    similarity: int


@dataclass
class SimilarityResult:
    question_id: str
    similarity_score: int = 0
    flagged: bool = False
    matches: List[SimilarityMatch] = field(default_factory=list)


# ---- integrity ----
@dataclass
class RiskFlag:
    type: str
    severity: Severity
    description: str
    evidence: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BotRiskReport:
    flags: List[RiskFlag]
    risk_score: int
    is_bot: bool
    confidence: int


# ---- benchmark ----
@dataclass
class CohortStats:
    average: int = 0
    median: int = 0
    top10_percent: int = 0
    top25_percent: int = 0
    percentile: int = 0
    sample_size: int = 0


@dataclass
class SkillComparison:
    skill: str
    candidate_score: int
    benchmark_average: int
    benchmark_top10: int
    percentile: int
    status: SkillStatus


@dataclass
class BenchmarkComparison:
    candidate_score: float
    candidate_percentage: int
    stats: CohortStats
    skill_comparison: List[SkillComparison]
    overall_status: OverallStatus
    recommendations: List[str]


# ---- submission aggregate ----
@dataclass
class Submission:
    id: str
    assessment_id: str
    candidate: CandidateInfo
    answers: Dict[str, Answer]
    submitted_at: datetime
    anti_cheat: AntiCheatTelemetry = field(default_factory=AntiCheatTelemetry)
    job_title: str = ""
    status: SubmissionStatus = "pending"
    scores: Optional[ScoreRecord] = None
    plagiarism: Dict[str, SimilarityResult] = field(default_factory=dict)
    bot_detection: Optional[BotRiskReport] = None
