"""Optional remote grader for subjective and coding answers.

The grader is advisory. :func:`request_remote_evaluation` always returns a
:class:`GraderOutcome`; callers branch on ``outcome.ok`` and fall back to the
heuristic scores on the error path.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

import openai
from pydantic import BaseModel, Field, ValidationError

from . import config as cfg_defaults
from .errors import GraderError
from .records import to_basic
from .types import CodingContent, McqContent, Question, SubjectiveContent, Submission
from .utils import clamp, percent, round_half_up

log = logging.getLogger(__name__)


# ---- wire payload returned by a grader ----
class RemoteEvaluatedAnswer(BaseModel):
    question_id: str
    type: Optional[str] = None
    score: float = Field(ge=0)
    max_score: Optional[float] = None
    feedback: str = ""


class RemoteSkill(BaseModel):
    skill: str
    score: float
    total: float
    percentage: float


class RemoteEvaluation(BaseModel):
    total_score: float
    total_possible: float
    percentage: float
    skill_analysis: List[RemoteSkill] = Field(default_factory=list)
    evaluated_answers: List[RemoteEvaluatedAnswer]


class RemoteGrader(Protocol):
    backend: str

    def grade(self, request: Mapping[str, Any]) -> Mapping[str, Any]: ...


@dataclass(frozen=True)
class GraderOutcome:
    """Either a validated evaluation or the error that prevented one."""

    evaluation: Optional[RemoteEvaluation] = None
    error: Optional[GraderError] = None
    latency_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.evaluation is not None and self.error is None


@dataclass(frozen=True)
class GraderSettings:
    backend: str
    model: str
    timeout_sec: float
    deadline_sec: float
    base_url: str
    api_key: str
    azure_endpoint: str
    azure_api_key: str
    azure_api_version: str
    azure_deployment: str
    log_path: str

    @staticmethod
    def from_cfg(cfg: Mapping[str, Any] | None) -> "GraderSettings":
        c = cfg or {}
        return GraderSettings(
            backend=str(c.get("GRADER_BACKEND", cfg_defaults.GRADER_BACKEND) or "none").lower(),
            model=str(c.get("GRADER_MODEL", cfg_defaults.GRADER_MODEL)),
            timeout_sec=float(c.get("GRADER_TIMEOUT_SEC", cfg_defaults.GRADER_TIMEOUT_SEC)),
            deadline_sec=float(c.get("GRADER_DEADLINE_SEC", cfg_defaults.GRADER_DEADLINE_SEC)),
            base_url=str(c.get("OPENAI_BASE_URL", "https://openrouter.ai/api/v1")),
            api_key=str(c.get("OPENAI_API_KEY", "")),
            azure_endpoint=str(c.get("AZURE_OPENAI_ENDPOINT", "")),
            azure_api_key=str(c.get("AZURE_OPENAI_API_KEY", "")),
            azure_api_version=str(c.get("AZURE_OPENAI_API_VERSION", "")),
            azure_deployment=str(c.get("AZURE_OPENAI_DEPLOYMENT", "")),
            log_path=str(c.get("GRADER_LOG_PATH", cfg_defaults.GRADER_LOG_PATH) or ""),
        )

    def missing(self) -> List[str]:
        if self.backend == "azure":
            need = {
                "AZURE_OPENAI_ENDPOINT": self.azure_endpoint,
                "AZURE_OPENAI_API_KEY": self.azure_api_key,
                "AZURE_OPENAI_API_VERSION": self.azure_api_version,
                "AZURE_OPENAI_DEPLOYMENT": self.azure_deployment,
            }
        elif self.backend == "openai":
            need = {"OPENAI_API_KEY": self.api_key}
        else:
            return []
        return [k for k, v in need.items() if not v]


def build_request(submission: Submission, questions: Sequence[Question]) -> Dict[str, Any]:
    """``{answers, job_title, candidate_name, questions}`` as sent to a grader."""
    answers = [
        {"question_id": qid, "response": to_basic(ans.response), "time_spent_seconds": ans.time_spent_seconds}
        for qid, ans in submission.answers.items()
    ]
    return {
        "answers": answers,
        "job_title": submission.job_title,
        "candidate_name": submission.candidate.name,
        "questions": [to_basic(q) for q in questions],
    }


def _append_call_log(path: str, entry: Dict[str, Any]) -> None:
    if not path:
        return
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")
    except OSError as exc:
        log.debug("grader call log not written: %s", exc)


def request_remote_evaluation(
    grader: RemoteGrader,
    submission: Submission,
    questions: Sequence[Question],
    *,
    log_path: str = "",
) -> GraderOutcome:
    """Call ``grader`` and validate its payload. Never raises."""
    t0 = time.time()
    backend = getattr(grader, "backend", "custom")
    error: Optional[GraderError] = None
    evaluation: Optional[RemoteEvaluation] = None
    try:
        raw = grader.grade(build_request(submission, questions))
        evaluation = RemoteEvaluation.model_validate(raw)
    except GraderError as exc:
        error = exc
    except ValidationError as exc:
        error = GraderError(f"malformed grader payload: {exc.error_count()} validation error(s)", backend=backend)
    except Exception as exc:  # transport errors from arbitrary grader implementations
        error = GraderError(f"{type(exc).__name__}: {exc}", backend=backend)
    latency_ms = int((time.time() - t0) * 1000)
    if error is not None:
        log.warning("remote grader unavailable for %s, using heuristic scores: %s", submission.id, error)
    _append_call_log(
        log_path,
        {
            "ts": round(time.time(), 3),
            "submission": submission.id,
            "backend": backend,
            "ok": error is None,
            "error": str(error) if error else None,
            "rt_ms": latency_ms,
        },
    )
    return GraderOutcome(evaluation=evaluation, error=error, latency_ms=latency_ms)


# ---- LLM-backed grader ----
def _strip_fences(text: str) -> str:
    t = (text or "").strip()
    if t.startswith("```json"):
        t = t[7:]
    elif t.startswith("```"):
        t = t[3:]
    if t.endswith("```"):
        t = t[:-3]
    return t.strip()


def _subjective_prompt(content: SubjectiveContent, marks: float, answer_text: str) -> str:
    return (
        "Evaluate this answer for a job assessment.\n\n"
        f"Question: {content.question}\n"
        f"Expected concepts to cover: {', '.join(content.expected_keywords) or 'N/A'}\n"
        f"Rubric: {content.rubric or 'Evaluate for clarity, completeness, and technical accuracy'}\n\n"
        f"Candidate's Answer:\n{answer_text}\n\n"
        "Return a JSON object with:\n"
        f'{{"score": <number between 0 and {marks}>, "feedback": "<2-3 sentences of constructive feedback>"}}\n\n'
        "Be fair but rigorous. Award partial credit for partially correct answers."
    )


def _coding_prompt(content: CodingContent, marks: float, code: str) -> str:
    return (
        "Review this code solution for a programming challenge.\n\n"
        f"Problem: {content.problem_statement}\n"
        f"Expected output format: {content.output_format or 'N/A'}\n\n"
        f"Submitted Code:\n```\n{code}\n```\n\n"
        "Evaluate the code and return a JSON object:\n"
        f'{{"score": <number between 0 and {marks}>, "feedback": "<brief feedback on the solution>"}}\n\n'
        "Be fair - if the logic looks correct, give good marks even if you can't execute it."
    )


class LLMGrader:
    """Grades subjective and coding answers with a chat-completion model.

    MCQs are scored by exact match. Any failed or unparseable completion fails
    the whole request with :class:`GraderError`, as does running past
    ``deadline_sec`` across all completions of one request.
    """

    def __init__(self, settings: GraderSettings):
        missing = settings.missing()
        if missing:
            raise RuntimeError(f"Remote grader not configured. Missing: {', '.join(missing)}")
        self.settings = settings
        self.backend = settings.backend
        self._clock = time.monotonic

    def _client(self):
        s = self.settings
        if s.backend == "azure":
            return openai.AzureOpenAI(
                azure_endpoint=s.azure_endpoint,
                api_key=s.azure_api_key,
                api_version=s.azure_api_version,
                timeout=s.timeout_sec,
                max_retries=0,
            )
        return openai.OpenAI(base_url=s.base_url, api_key=s.api_key, timeout=s.timeout_sec, max_retries=0)

    def _model(self) -> str:
        return self.settings.azure_deployment if self.backend == "azure" else self.settings.model

    def _time_left(self, deadline: float) -> float:
        left = deadline - self._clock()
        if left <= 0:
            raise GraderError(
                f"grading deadline of {self.settings.deadline_sec:g}s exceeded", backend=self.backend
            )
        return min(self.settings.timeout_sec, left)

    def _complete(self, cli, prompt: str, marks: float, deadline: float) -> Dict[str, Any]:
        timeout = self._time_left(deadline)
        try:
            resp = cli.chat.completions.create(
                model=self._model(),
                messages=[{"role": "user", "content": prompt}],
                temperature=0.0,
                max_tokens=300,
                timeout=timeout,
            )
            content = resp.choices[0].message.content if resp.choices else None
            data = json.loads(_strip_fences(content or ""))
            score = clamp(float(data["score"]), 0.0, float(marks))
        except openai.OpenAIError as exc:
            raise GraderError(f"completion failed: {exc}", backend=self.backend) from exc
        except (ValueError, KeyError, TypeError) as exc:
            raise GraderError(f"unparseable completion: {exc}", backend=self.backend) from exc
        return {"score": round_half_up(score), "feedback": str(data.get("feedback") or "")}

    def grade(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        from .question_bank import question_from_dict
        from .records import response_from_dict

        deadline = self._clock() + self.settings.deadline_sec
        cli = self._client()
        responses = {a["question_id"]: a.get("response") or {} for a in request.get("answers") or ()}
        total = 0.0
        possible = 0.0
        evaluated: List[Dict[str, Any]] = []
        skills: Dict[str, Dict[str, float]] = {}
        for raw_q in request.get("questions") or ():
            q = question_from_dict(raw_q)
            possible += q.marks
            resp = response_from_dict(responses.get(q.id), q.type)
            if isinstance(q.content, McqContent):
                ok = getattr(resp, "selected_option", None) == q.content.correct_answer
                item = {"score": q.marks if ok else 0, "feedback": "Correct!" if ok else "Incorrect."}
            elif isinstance(q.content, SubjectiveContent):
                text = getattr(resp, "text", "")
                if len(text.strip()) < cfg_defaults.SUBJECTIVE_MIN_CHARS:
                    item = {"score": 0, "feedback": "No answer provided or answer too short."}
                else:
                    item = self._complete(cli, _subjective_prompt(q.content, q.marks, text), q.marks, deadline)
            else:
                code = getattr(resp, "code", "")
                if len(code.strip()) < cfg_defaults.CODING_MIN_CHARS:
                    item = {"score": 0, "feedback": "No code submitted or code too short."}
                else:
                    item = self._complete(cli, _coding_prompt(q.content, q.marks, code), q.marks, deadline)
            total += item["score"]
            evaluated.append({"question_id": q.id, "type": q.type, "max_score": q.marks, **item})
            for tag in q.skill_tags:
                row = skills.setdefault(tag, {"score": 0.0, "total": 0.0})
                row["score"] += item["score"]
                row["total"] += q.marks
        return {
            "total_score": total,
            "total_possible": possible,
            "percentage": percent(total, possible),
            "skill_analysis": [
                {"skill": k, "score": v["score"], "total": v["total"], "percentage": percent(v["score"], v["total"])}
                for k, v in sorted(skills.items())
            ],
            "evaluated_answers": evaluated,
        }


def grader_from_cfg(cfg: Mapping[str, Any] | None) -> Optional[LLMGrader]:
    """Configured grader, or ``None`` when the backend is ``none`` or incomplete."""
    settings = GraderSettings.from_cfg(cfg)
    if settings.backend not in ("azure", "openai"):
        return None
    try:
        return LLMGrader(settings)
    except RuntimeError as exc:
        log.warning("%s; evaluations will use heuristic scoring", exc)
        return None
