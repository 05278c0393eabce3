import logging
from typing import Callable, List, Optional, Sequence

from videoquiz.core.config import Settings, settings as default_settings
from videoquiz.core.errors import MalformedDerivationOutput, SegmentationFailure
from videoquiz.extract.gateway import DerivationGateway
from videoquiz.ingest import progress as milestones
from videoquiz.ingest.dispatch import TranscribeFn, dispatch_segments
from videoquiz.ingest.jobs import Job, JobResult, Segment
from videoquiz.ingest.progress import ProgressReporter
from videoquiz.ingest.segmenter import remove_partial_segments, segment_media
from videoquiz.ingest.worker_client import WorkerClient

logger = logging.getLogger(__name__)

SegmenterFn = Callable[..., List[Segment]]


class TranscriptionPipeline:
    """Runs one job end to end: segment the upload, transcribe segments on the worker pool, derive summary and quiz.
    Why available: Single entry point the scheduler calls per job, so every job goes through the same steps."""

    def __init__(
        self,
        *,
        endpoints: Sequence[str],
        transcribe: TranscribeFn,
        gateway,
        segment_seconds: int = 300,
        ffmpeg_bin: str = "ffmpeg",
        failure_policy: str = "best-effort",
        segmenter: SegmenterFn = segment_media,
    ):
        self.endpoints = list(endpoints)
        self.segment_seconds = segment_seconds
        self.ffmpeg_bin = ffmpeg_bin
        self.failure_policy = failure_policy
        self._transcribe = transcribe
        self._gateway = gateway
        self._segmenter = segmenter

    def __call__(self, job: Job, progress: ProgressReporter) -> JobResult:
        return self.run(job, progress)

    def run(self, job: Job, progress: ProgressReporter) -> JobResult:
        try:
            segments = self._segmenter(
                input_path=job.input_path,
                output_dir=job.work_dir,
                target_seconds=self.segment_seconds,
                ffmpeg_bin=self.ffmpeg_bin,
            )
        except SegmentationFailure:
            remove_partial_segments(job.work_dir)
            raise
        progress.report(milestones.SEGMENTATION_COMPLETE, f"Segmentation complete: {len(segments)} segments")

        outcome = dispatch_segments(
            segments,
            self.endpoints,
            self._transcribe,
            policy=self.failure_policy,
            on_segment_done=progress.segment_done,
        )
        if outcome.failed:
            logger.warning(
                "transcript_incomplete job_id=%s failed_segments=%s segments=%d",
                job.job_id,
                outcome.failed,
                outcome.segments_total,
            )
        progress.report(milestones.TRANSCRIPT_MERGED, "Transcript merged")

        summary = ""
        quiz = []
        if outcome.text.strip():
            summary = self._gateway.summarize(outcome.text)
            progress.report(milestones.SUMMARY_READY, "Summary ready")
            try:
                quiz = self._gateway.make_quiz(outcome.text)
            except MalformedDerivationOutput as e:
                logger.warning("quiz_malformed job_id=%s error=%s", job.job_id, e)
                quiz = []
            progress.report(milestones.QUIZ_READY, "Quiz ready")

        return JobResult(
            transcript=outcome.text,
            summary=summary,
            quiz=quiz,
            segments_total=outcome.segments_total,
            segments_failed=outcome.failed,
        )


def build_pipeline(
    cfg: Optional[Settings] = None,
    *,
    worker_client: Optional[WorkerClient] = None,
    gateway=None,
) -> TranscriptionPipeline:
    """Wire a pipeline from settings: HTTP worker client, OpenAI gateway, ffmpeg segmenter."""
    cfg = cfg or default_settings
    client = worker_client or WorkerClient(timeout=cfg.worker_timeout_seconds)
    return TranscriptionPipeline(
        endpoints=cfg.worker_endpoints,
        transcribe=client.transcribe,
        gateway=gateway or DerivationGateway(num_questions=cfg.quiz_questions),
        segment_seconds=cfg.segment_seconds,
        ffmpeg_bin=cfg.ffmpeg_bin,
        failure_policy=cfg.segment_failure_policy,
    )
