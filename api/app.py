from __future__ import annotations
from fastapi import FastAPI, HTTPException, Path, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import logging, os, uuid, typing as t

from assess_core.benchmark import compare
from assess_core.config import load_config, settings_for_assessment
from assess_core.errors import PersistenceError, SubmissionNotFound
from assess_core.export import to_csv as leaderboard_to_csv, to_json as leaderboard_to_json
from assess_core.grader import GraderSettings, grader_from_cfg
from assess_core.pipeline import evaluate_submission
from assess_core.question_bank import audit_questions, parse_questions
from assess_core.records import submission_from_dict, submission_to_dict, to_basic
from .storage import JsonStore, utcnow_iso

log = logging.getLogger(__name__)

CFG = load_config()
STORE = JsonStore()
GRADER = grader_from_cfg(CFG)

app = FastAPI(title="Assessment Integrity API")


@app.get("/")
def root():
    return {"status": "ok", "service": "assess-integrity-api"}


ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


# ---- Schemas ----
# ids become file names in the store
ID_PATTERN = r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*$"


class AssessmentReq(BaseModel):
    title: str = ""
    passing_percentage: float | None = Field(default=None, ge=0, le=100)
    questions: list[dict[str, t.Any]]


class CandidateReq(BaseModel):
    name: str
    email: str
    user_id: str | None = None
    started_at: str | None = None


class AntiCheatReq(BaseModel):
    tab_switches: int = Field(default=0, ge=0)
    copy_paste_detected: bool = False
    question_times: dict[str, float] = Field(default_factory=dict)


class SubmissionReq(BaseModel):
    id: str | None = Field(default=None, pattern=ID_PATTERN, max_length=128)
    assessment_id: str = Field(pattern=ID_PATTERN, max_length=128)
    candidate: CandidateReq
    answers: dict[str, dict[str, t.Any]] = Field(default_factory=dict)
    anti_cheat: AntiCheatReq = Field(default_factory=AntiCheatReq)
    submitted_at: str | None = None
    job_title: str = ""


class StatusReq(BaseModel):
    status: t.Literal["evaluated", "shortlisted", "rejected"]


# ---- Helpers ----
def _get_submission(sid: str):
    try:
        return STORE.get_submission(sid)
    except SubmissionNotFound:
        raise HTTPException(404, "submission not found")


def _require_assessment(aid: str) -> dict[str, t.Any]:
    record = STORE.get_assessment(aid)
    if record is None:
        raise HTTPException(404, "assessment not found")
    return record


def _evaluate(sid: str) -> dict[str, t.Any]:
    try:
        outcome = evaluate_submission(sid, STORE, GRADER, CFG)
    except SubmissionNotFound:
        raise HTTPException(404, "submission not found")
    except PersistenceError as exc:
        log.error("%s", exc)
        raise HTTPException(503, "evaluation could not be saved, retry later")
    return outcome.to_dict()


# ---- Health ----
@app.get("/health")
def health():
    gs = GraderSettings.from_cfg(CFG)
    return {
        "grader_backend": gs.backend,
        "grader_ready": GRADER is not None,
        "grader_missing": gs.missing(),
        "data_dir": str(STORE.root),
    }


# ---- Assessments ----
@app.put("/assessments/{aid}")
def put_assessment(req: AssessmentReq, aid: str = Path(pattern=ID_PATTERN, max_length=128)):
    try:
        questions = parse_questions(req.questions)
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(422, f"invalid question bank: {exc}")
    STORE.put_assessment(aid, req.questions, req.passing_percentage, req.title)
    return {
        "id": aid,
        "questions": len(questions),
        "passing_percentage": req.passing_percentage,
        "warnings": audit_questions(questions),
    }


@app.get("/assessments/{aid}/stats")
def assessment_stats(aid: str):
    _require_assessment(aid)
    return STORE.stats(aid)


@app.get("/assessments/{aid}/leaderboard")
def assessment_leaderboard(aid: str):
    _require_assessment(aid)
    return {"assessment_id": aid, **leaderboard_to_json(STORE.leaderboard(aid))}


@app.get("/assessments/{aid}/leaderboard.csv")
def assessment_leaderboard_csv(aid: str):
    _require_assessment(aid)
    body = leaderboard_to_csv(STORE.leaderboard(aid))
    filename = f"{aid}_leaderboard.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )


# ---- Submissions ----
@app.post("/submissions")
def create_submission(req: SubmissionReq, evaluate: bool = Query(False, description="Evaluate immediately")):
    _require_assessment(req.assessment_id)
    raw = req.model_dump()
    raw["id"] = req.id or str(uuid.uuid4())
    raw["submitted_at"] = req.submitted_at or utcnow_iso()
    raw["status"] = "pending"
    try:
        sub = submission_from_dict(raw)
    except ValueError as exc:
        raise HTTPException(422, f"invalid submission: {exc}")
    STORE.add_submission(sub)
    if evaluate:
        return _evaluate(sub.id)
    return {"id": sub.id, "status": sub.status}


@app.get("/submissions/{sid}")
def get_submission(sid: str):
    return submission_to_dict(_get_submission(sid))


@app.post("/submissions/{sid}/evaluate")
def evaluate_endpoint(sid: str):
    return _evaluate(sid)


@app.get("/submissions/{sid}/outcome")
def outcome_endpoint(sid: str):
    _get_submission(sid)
    outcome = STORE.get_outcome(sid)
    if outcome is None:
        raise HTTPException(409, "submission not evaluated yet")
    return outcome


@app.get("/submissions/{sid}/benchmark")
def benchmark_endpoint(sid: str):
    sub = _get_submission(sid)
    if sub.scores is None:
        raise HTTPException(409, "submission not evaluated yet")
    cohort = [p.scores for p in STORE.list_cohort(sub.assessment_id) if p.scores is not None and p.id != sub.id]
    cohort.append(sub.scores)
    settings = settings_for_assessment(CFG, sub.assessment_id)
    return to_basic(compare(sub.scores, cohort, settings.benchmark))


@app.post("/submissions/{sid}/status")
def set_status(sid: str, req: StatusReq):
    sub = _get_submission(sid)
    if sub.scores is None:
        raise HTTPException(409, "submission not evaluated yet")
    sub = STORE.update_status(sid, req.status)
    log.info("submission %s marked %s", sid, req.status)
    return {"id": sub.id, "status": sub.status}
