"""
Single-flight job queue.

Jobs run strictly one at a time in arrival order. The FIFO and the "active job"
slot share one condition variable; a job is claimed by an atomic check-and-set
under that lock, so enqueue can never race a second job into processing. A
single daemon consumer thread drains the queue; enqueue only appends and wakes it.
"""
import logging
import os
import threading
from collections import deque
from pathlib import Path
from typing import Callable, Deque, Optional

from videoquiz.core.errors import PipelineError
from videoquiz.ingest import progress as milestones
from videoquiz.ingest.cleanup import cleanup_job
from videoquiz.ingest.jobs import DONE, Job, JobResult, ResultStore, new_job_id
from videoquiz.ingest.progress import ProgressChannel, ProgressReporter

logger = logging.getLogger(__name__)

PipelineFn = Callable[[Job, ProgressReporter], JobResult]
CleanupFn = Callable[[Job], bool]


class JobQueue:
    """Accepts jobs, records them in the ResultStore, and drives each through the pipeline.
    A failing job is recorded as error and never stops the queue."""

    def __init__(
        self,
        *,
        store: ResultStore,
        channel: ProgressChannel,
        pipeline: PipelineFn,
        work_root: str,
        cleanup: CleanupFn = cleanup_job,
        autostart: bool = True,
    ):
        self.store = store
        self.channel = channel
        self.work_root = work_root
        self._pipeline = pipeline
        self._cleanup = cleanup
        self._autostart = autostart
        self._pending: Deque[Job] = deque()
        self._active: Optional[Job] = None
        self._cond = threading.Condition()
        self._consumer: Optional[threading.Thread] = None
        self._stopping = False

    # ------------------------------------------------------------------
    # admission
    # ------------------------------------------------------------------
    def enqueue(self, input_path: Path, subscription_id: Optional[str] = None) -> Job:
        """Queue a job for input_path. Returns immediately with the job in status queued."""
        job_id = new_job_id()
        work_dir = Path(self.work_root) / job_id
        os.makedirs(work_dir, exist_ok=True)
        job = Job(
            job_id=job_id,
            input_path=Path(input_path),
            work_dir=work_dir,
            subscription_id=subscription_id or None,
        )
        self.store.set(job.job_id, job.snapshot())
        ProgressReporter(self.channel, job.job_id, job.subscription_id).report(
            milestones.UPLOAD_ACCEPTED, "Upload accepted", status=job.status
        )

        with self._cond:
            self._pending.append(job)
            if self._autostart:
                self._ensure_consumer()
            self._cond.notify_all()

        logger.info("job_queued job_id=%s queue_depth=%d", job.job_id, self.pending())
        return job

    def pending(self) -> int:
        with self._cond:
            return len(self._pending)

    @property
    def active_job_id(self) -> Optional[str]:
        with self._cond:
            return self._active.job_id if self._active is not None else None

    # ------------------------------------------------------------------
    # execution
    # ------------------------------------------------------------------
    def run_next(self) -> bool:
        """Run the head of the queue to completion. No-op (False) if a job is already running or nothing is queued."""
        with self._cond:
            if self._active is not None or not self._pending:
                return False
            job = self._pending.popleft()
            self._active = job

        try:
            self._execute(job)
        finally:
            with self._cond:
                self._active = None
                self._cond.notify_all()
        return True

    def _execute(self, job: Job) -> None:
        reporter = ProgressReporter(self.channel, job.job_id, job.subscription_id)

        job.start()
        self.store.set(job.job_id, job.snapshot())
        reporter.report(milestones.PROCESSING_STARTED, "Processing started")
        logger.info("job_started job_id=%s", job.job_id)

        try:
            try:
                result = self._pipeline(job, reporter)
            except PipelineError as e:
                logger.warning("job_failed job_id=%s error=%s: %s", job.job_id, type(e).__name__, e)
                job.fail(f"{type(e).__name__}: {e}")
            except Exception as e:
                logger.exception("job_crashed job_id=%s", job.job_id)
                job.fail(f"Unexpected error: {e}")
            else:
                job.finish(result)

            self.store.set(job.job_id, job.snapshot())
            if job.status == DONE:
                reporter.report(milestones.FINISHED, "Done", status=job.status)
            else:
                reporter.report(milestones.FINISHED, job.error or "Failed", status=job.status)
            logger.info("job_finished job_id=%s status=%s", job.job_id, job.status)
        finally:
            try:
                self._cleanup(job)
            except Exception:
                logger.exception("cleanup_crashed job_id=%s", job.job_id)

    # ------------------------------------------------------------------
    # consumer thread
    # ------------------------------------------------------------------
    def _ensure_consumer(self) -> None:
        # A consumer still finishing its job after a timed-out shutdown is kept alive.
        self._stopping = False
        if self._consumer is not None and self._consumer.is_alive():
            self._cond.notify_all()
            return
        self._consumer = threading.Thread(target=self._consume, name="job-queue", daemon=True)
        self._consumer.start()

    def _consume(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._stopping or (self._pending and self._active is None))
                if self._stopping:
                    if self._consumer is threading.current_thread():
                        self._consumer = None
                    return
            try:
                self.run_next()
            except Exception:
                logger.exception("consumer_error")

    def start(self) -> None:
        with self._cond:
            self._ensure_consumer()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is queued or running. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: not self._pending and self._active is None, timeout)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop the consumer after the current job; queued jobs stay queued."""
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
            consumer = self._consumer
        if consumer is not None:
            consumer.join(timeout)
