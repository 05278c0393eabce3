import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

load_dotenv()

FAILURE_POLICIES = ("best-effort", "fail-fast")


def _split_endpoints(raw: str) -> List[str]:
    return [e.strip() for e in (raw or "").split(",") if e.strip()]


class Settings(BaseModel):
    """Application settings loaded from environment: OpenAI models, worker pool, segmentation, upload limits and storage roots.
    Why available: Single source of configuration so the API, scheduler and worker service agree on limits and endpoints."""
    model_config = ConfigDict(validate_default=True)

    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    chat_model: str = os.getenv("CHAT_MODEL", "gpt-4.1-mini")
    transcribe_model: str = os.getenv("TRANSCRIBE_MODEL", "gpt-4o-mini-transcribe")
    worker_endpoints: List[str] = _split_endpoints(
        os.getenv("WORKER_ENDPOINTS", "http://localhost:5001/process")
    )
    worker_timeout_seconds: float = float(os.getenv("WORKER_TIMEOUT_SECONDS", "600"))
    segment_seconds: int = int(os.getenv("SEGMENT_SECONDS", "300"))
    ffmpeg_bin: str = os.getenv("FFMPEG_BIN", "ffmpeg")
    segment_failure_policy: str = os.getenv("SEGMENT_FAILURE_POLICY", "best-effort")
    quiz_questions: int = int(os.getenv("QUIZ_QUESTIONS", "5"))
    max_upload_mb: int = int(os.getenv("MAX_UPLOAD_MB", "500"))
    data_root: str = os.getenv("DATA_ROOT", os.path.join(os.getcwd(), "data"))
    result_store_max_entries: int = int(os.getenv("RESULT_STORE_MAX_ENTRIES", "1000"))
    prompt_version: str = os.getenv("PROMPT_VERSION", "v1")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    rate_limit_requests: int = int(os.getenv("RATE_LIMIT_REQUESTS", "20"))
    rate_limit_window_seconds: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
    progress_idle_seconds: float = float(os.getenv("PROGRESS_IDLE_SECONDS", "900"))

    @field_validator(
        "worker_timeout_seconds",
        "segment_seconds",
        "quiz_questions",
        "max_upload_mb",
        "result_store_max_entries",
        "rate_limit_requests",
        "rate_limit_window_seconds",
        "progress_idle_seconds",
    )
    @classmethod
    def must_be_positive(cls, v):
        """Reject zero or negative limits coming from env."""
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("worker_endpoints")
    @classmethod
    def must_have_workers(cls, v):
        """The dispatch planner partitions over this list, so it can never be empty."""
        if not v:
            raise ValueError("at least one worker endpoint is required")
        return v

    @field_validator("segment_failure_policy")
    @classmethod
    def known_policy(cls, v):
        v = (v or "").strip().lower()
        if v not in FAILURE_POLICIES:
            raise ValueError(f"must be one of {', '.join(FAILURE_POLICIES)}")
        return v

    @property
    def upload_root(self) -> str:
        return os.path.join(self.data_root, "uploads")

    @property
    def work_root(self) -> str:
        return os.path.join(self.data_root, "chunks")


settings = Settings()
