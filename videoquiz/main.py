import asyncio
import json
import logging
import os
import queue
import time
import uuid
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse

from videoquiz.core.config import settings
from videoquiz.core.errors import as_http_500
from videoquiz.guardrails.rate_limit import SimpleRateLimiter
from videoquiz.ingest.jobs import TERMINAL_STATUSES, JobState, ResultStore
from videoquiz.ingest.progress import ProgressChannel
from videoquiz.ingest.scheduler import JobQueue
from videoquiz.ingest.worker import build_pipeline
from videoquiz.models.schemas import (
    JobResultPayload,
    JobStatusResponse,
    LimitsResponse,
    UploadResponse,
)
from videoquiz.observability.middleware import RequestTimingMiddleware, get_request_id

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# -------------------------
# App setup
# -------------------------

app = FastAPI(title="Video Transcript Quiz API")
app.add_middleware(RequestTimingMiddleware)

rate_limiter = SimpleRateLimiter(
    max_requests=settings.rate_limit_requests,
    window_seconds=settings.rate_limit_window_seconds,
)

UPLOAD_CHUNK_BYTES = 1024 * 1024
KEEPALIVE_SECONDS = 15.0
PROGRESS_POLL_SECONDS = 0.25

os.makedirs(settings.upload_root, exist_ok=True)
os.makedirs(settings.work_root, exist_ok=True)

store = ResultStore(max_entries=settings.result_store_max_entries)
channel = ProgressChannel()
job_queue = JobQueue(
    store=store,
    channel=channel,
    pipeline=build_pipeline(settings),
    work_root=settings.work_root,
)


def _state_to_response(state: JobState) -> JobStatusResponse:
    """Map a ResultStore entry to the public status payload; result is only set once the job is done."""
    result = None
    if state.result is not None:
        result = JobResultPayload(
            transcript=state.result.transcript,
            summary=state.result.summary,
            quiz=state.result.quiz,
            segments_total=state.result.segments_total,
            segments_failed=state.result.segments_failed,
        )
    return JobStatusResponse(
        job_id=state.job_id,
        status=state.status,
        created_at=state.created_at,
        started_at=state.started_at,
        finished_at=state.finished_at,
        result=result,
        error=state.error,
    )


async def _save_upload(upload: UploadFile, dest: Path) -> int:
    """Stream the upload to dest in chunks; raises 413 past MAX_UPLOAD_MB and leaves nothing behind."""
    limit = settings.max_upload_mb * 1024 * 1024
    written = 0
    try:
        with open(dest, "wb") as out:
            while True:
                chunk = await upload.read(UPLOAD_CHUNK_BYTES)
                if not chunk:
                    break
                written += len(chunk)
                if written > limit:
                    raise HTTPException(
                        status_code=413,
                        detail=f"{upload.filename} exceeds {settings.max_upload_mb} MB limit",
                    )
                out.write(chunk)
    except BaseException:
        if dest.exists():
            dest.unlink()
        raise
    return written


# -------------------------
# Root
# -------------------------

@app.get("/")
def root():
    return {"app": "Video Transcript Quiz API", "docs": "/docs"}


@app.get("/health")
def health():
    """Liveness probe; also reports queue depth so operators can see backlog."""
    return {"status": "ok", "queued": job_queue.pending(), "active_job": job_queue.active_job_id}


@app.get("/limits", response_model=LimitsResponse)
def limits(request: Request):
    rate_limiter.check(request, "limits")
    return LimitsResponse(
        max_upload_mb=settings.max_upload_mb,
        segment_seconds=settings.segment_seconds,
        worker_pool_size=len(settings.worker_endpoints),
        quiz_questions=settings.quiz_questions,
        segment_failure_policy=settings.segment_failure_policy,
        rate_limit_requests=settings.rate_limit_requests,
        rate_limit_window_seconds=settings.rate_limit_window_seconds,
    )


# -------------------------
# Upload (enqueue)
# -------------------------

@app.post("/upload", response_model=UploadResponse, status_code=202)
async def upload(
    request: Request,
    video: UploadFile = File(...),
    subscription_id: Optional[str] = Form(None),
):
    """Saves the uploaded media file and enqueues a transcription job; returns job_id at once. Client polls GET /jobs/{job_id} or listens on GET /progress/{subscription_id}.
    Why available: Entry point of the pipeline; processing happens one job at a time in the background."""
    rate_limiter.check(request, "upload")

    suffix = Path(video.filename or "").suffix.lower() or ".mp4"
    dest = Path(settings.upload_root) / f"{uuid.uuid4().hex}{suffix}"
    try:
        size = await _save_upload(video, dest)
    finally:
        await video.close()

    if size == 0:
        dest.unlink(missing_ok=True)
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    try:
        job = job_queue.enqueue(dest, subscription_id=(subscription_id or "").strip() or None)
    except Exception as e:
        dest.unlink(missing_ok=True)
        raise as_http_500(e)

    logger.info(
        "upload_accepted job_id=%s bytes=%d request_id=%s",
        job.job_id,
        size,
        get_request_id(request),
    )
    return UploadResponse(job_id=job.job_id, status=job.status, subscription_id=job.subscription_id)


# -------------------------
# Job Status
# -------------------------

@app.get("/jobs/{job_id}", response_model=JobStatusResponse)
def job_status(job_id: str, request: Request):
    """Returns the job's status (queued / processing / done / error), plus the result when done or the error description when failed."""
    rate_limiter.check(request, "status")

    state = store.get(job_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return _state_to_response(state)


# -------------------------
# Progress (Server-Sent Events)
# -------------------------

async def _progress_events(subscription_id: str, q: queue.Queue) -> AsyncIterator[str]:
    """Yield SSE frames until a terminal event arrives or the stream has been idle for PROGRESS_IDLE_SECONDS.
    Polls without blocking so an open stream never holds a threadpool worker."""
    last_event = last_frame = time.monotonic()
    try:
        while True:
            try:
                event = q.get_nowait()
            except queue.Empty:
                now = time.monotonic()
                if now - last_event >= settings.progress_idle_seconds:
                    logger.info("progress_stream_idle subscription_id=%s", subscription_id)
                    return
                if now - last_frame >= KEEPALIVE_SECONDS:
                    last_frame = now
                    yield ": keepalive\n\n"
                await asyncio.sleep(PROGRESS_POLL_SECONDS)
                continue
            last_event = last_frame = time.monotonic()
            yield f"data: {json.dumps(event.to_dict())}\n\n"
            if event.status in TERMINAL_STATUSES:
                return
    finally:
        channel.unsubscribe(subscription_id, q)


@app.get("/progress/{subscription_id}")
async def progress(subscription_id: str, request: Request):
    """Streams progress events for the job uploaded with this subscription_id. Events emitted before subscribing are not replayed."""
    rate_limiter.check(request, "progress")
    q = channel.subscribe(subscription_id)
    return StreamingResponse(
        _progress_events(subscription_id, q),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
