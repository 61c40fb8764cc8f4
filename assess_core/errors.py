"""
Exception types for the evaluation core.

Only persistence failures are meant to reach callers; grader failures are
caught inside the scoring engine and input problems are scored, not raised.
"""


class AssessError(Exception):
    """Base exception for the evaluation core."""

    pass


class GraderError(AssessError):
    """Remote grader call failed or returned an unusable payload."""

    def __init__(self, message: str, *, backend: str = "none"):
        self.backend = backend
        super().__init__(message)


class SubmissionNotFound(AssessError):
    """Submission id unknown to the store."""

    def __init__(self, submission_id: str):
        self.submission_id = submission_id
        super().__init__(f"submission {submission_id} not found")


class PersistenceError(AssessError):
    """Store write failed after all retries."""

    def __init__(self, submission_id: str, attempts: int, cause: Exception | None = None):
        self.submission_id = submission_id
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"could not persist evaluation for {submission_id} after {attempts} attempt(s): {cause}")
