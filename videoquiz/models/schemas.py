from pydantic import AliasChoices, BaseModel, Field, field_validator
from typing import List, Optional


class QuizQuestion(BaseModel):
    """One multiple-choice question: text, exactly four options, and the index of the correct one.
    Why available: Validates the quiz provider's output before it is stored; accepts correctIndex or correct_index on input."""

    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=4, max_length=4)
    correct_index: int = Field(
        ...,
        ge=0,
        le=3,
        validation_alias=AliasChoices("correct_index", "correctIndex"),
    )

    @field_validator("question")
    @classmethod
    def _strip_question(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("question must not be blank")
        return v

    @field_validator("options")
    @classmethod
    def _strip_options(cls, v: List[str]) -> List[str]:
        out = [str(o).strip() for o in v]
        if any(not o for o in out):
            raise ValueError("options must not be blank")
        return out


class UploadResponse(BaseModel):
    """Response for POST /upload: job_id and initial status. Why available: Clients poll GET /jobs/{job_id} or subscribe to /progress with it."""

    job_id: str
    status: str = "queued"
    subscription_id: Optional[str] = None


class JobResultPayload(BaseModel):
    """Result of a finished job: merged transcript, summary, quiz, and how many segments were lost."""

    transcript: str
    summary: str
    quiz: List[QuizQuestion] = Field(default_factory=list)
    segments_total: int = Field(0, ge=0)
    segments_failed: List[int] = Field(
        default_factory=list,
        description="Indices of segments whose transcription failed and were left empty",
    )


class JobStatusResponse(BaseModel):
    """Response for GET /jobs/{job_id}: job state, timestamps, and the result or error once terminal."""

    job_id: str
    status: str
    created_at: float
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    result: Optional[JobResultPayload] = None
    error: Optional[str] = None


class LimitsResponse(BaseModel):
    """Response for GET /limits: upload and pipeline limits. Why available: Lets clients check sizes before uploading."""

    max_upload_mb: int = Field(..., description="Max upload file size in MB")
    segment_seconds: int = Field(..., description="Target segment duration in seconds")
    worker_pool_size: int = Field(..., description="Number of transcription workers")
    quiz_questions: int = Field(..., description="Questions per generated quiz")
    segment_failure_policy: str = Field(..., description="best-effort or fail-fast")
    rate_limit_requests: int = Field(..., description="Rate limit requests per window")
    rate_limit_window_seconds: int = Field(..., description="Rate limit window in seconds")


class TranscribeResponse(BaseModel):
    """Response of the worker service's POST /process."""

    text: str
