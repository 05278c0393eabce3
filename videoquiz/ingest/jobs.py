"""In-memory job model and result store: status (queued / processing / done / error), segments, and results."""
import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional

from videoquiz.core.errors import InvalidTransition
from videoquiz.models.schemas import QuizQuestion

QUEUED = "queued"
PROCESSING = "processing"
DONE = "done"
ERROR = "error"

TERMINAL_STATUSES = (DONE, ERROR)

_ALLOWED_TRANSITIONS = {
    QUEUED: (PROCESSING,),
    PROCESSING: (DONE, ERROR),
    DONE: (),
    ERROR: (),
}


def new_job_id() -> str:
    """Random UUID4 hex; never derived from the clock, so concurrent uploads cannot collide."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Segment:
    """One time-bounded slice of the input file. index is its chronological position (0-based)."""

    index: int
    path: Path


@dataclass
class WorkerAssignment:
    """A contiguous slice of a job's segments bound to one worker endpoint."""

    endpoint: str
    segments: List[Segment] = field(default_factory=list)


@dataclass
class JobResult:
    """Terminal payload of a successful job.
    segments_failed lists the indices that contributed an empty placeholder to the transcript."""

    transcript: str
    summary: str
    quiz: List[QuizQuestion] = field(default_factory=list)
    segments_total: int = 0
    segments_failed: List[int] = field(default_factory=list)


@dataclass
class JobState:
    """Snapshot of a job as kept by the ResultStore, independent of the Job object's lifetime."""

    job_id: str
    status: str
    subscription_id: Optional[str] = None
    created_at: float = 0.0
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    result: Optional[JobResult] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass
class Job:
    """A single transcription job. Owns input_path and work_dir exclusively until cleanup.
    Status moves queued -> processing -> done | error exactly once; result/error stay unset until then."""

    job_id: str
    input_path: Path
    work_dir: Path
    subscription_id: Optional[str] = None
    status: str = QUEUED
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    result: Optional[JobResult] = None
    error: Optional[str] = None

    def _transition(self, target: str) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(f"job {self.job_id}: {self.status} -> {target} is not allowed")
        self.status = target

    def start(self) -> None:
        self._transition(PROCESSING)
        self.started_at = time.time()

    def finish(self, result: JobResult) -> None:
        self._transition(DONE)
        self.result = result
        self.finished_at = time.time()

    def fail(self, error: str) -> None:
        self._transition(ERROR)
        self.error = error
        self.finished_at = time.time()

    def snapshot(self) -> JobState:
        return JobState(
            job_id=self.job_id,
            status=self.status,
            subscription_id=self.subscription_id,
            created_at=self.created_at,
            started_at=self.started_at,
            finished_at=self.finished_at,
            result=self.result,
            error=self.error,
        )


class ResultStore:
    """Keyed job state, readable after the job's working files are gone.
    Writes overwrite unconditionally. When full, the oldest terminal entries are evicted first."""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self._items: "OrderedDict[str, JobState]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, job_id: str) -> Optional[JobState]:
        with self._lock:
            state = self._items.get(job_id)
            return replace(state) if state is not None else None

    def set(self, job_id: str, state: JobState) -> None:
        with self._lock:
            self._items[job_id] = replace(state)
            self._evict()

    def _evict(self) -> None:
        overflow = len(self._items) - self.max_entries
        if overflow <= 0:
            return
        for key in [k for k, s in self._items.items() if s.is_terminal][:overflow]:
            del self._items[key]

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def snapshot(self) -> Dict[str, JobState]:
        with self._lock:
            return {k: replace(v) for k, v in self._items.items()}
