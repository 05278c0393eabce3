"""
Fan segments out to the worker pool and fan the text back in, in chronological order.

Partitioning is static: with W endpoints and N segments, endpoint i gets the
contiguous slice [i*per, (i+1)*per) where per = ceil(N / W). It never looks at
worker load or timing.
"""
import logging
import math
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from videoquiz.core.errors import WorkerCallFailure
from videoquiz.ingest.jobs import Segment, WorkerAssignment

logger = logging.getLogger(__name__)

BEST_EFFORT = "best-effort"
FAIL_FAST = "fail-fast"

TranscribeFn = Callable[[str, Segment], str]
SegmentDoneFn = Callable[[int, int], None]


@dataclass
class DispatchOutcome:
    """Merged text plus the indices of segments that came back empty because their worker call failed."""

    text: str
    segments_total: int = 0
    failed: List[int] = field(default_factory=list)


def plan_assignments(segments: Sequence[Segment], endpoints: Sequence[str]) -> List[WorkerAssignment]:
    """Split segments into len(endpoints) contiguous slices of ceil(N / W); the last ones may be short or empty."""
    if not endpoints:
        raise ValueError("worker pool is empty")
    n = len(segments)
    per = math.ceil(n / len(endpoints)) if n else 0
    return [
        WorkerAssignment(endpoint=endpoint, segments=list(segments[i * per:(i + 1) * per]))
        for i, endpoint in enumerate(endpoints)
    ]


def merge_texts(assignments: Sequence[WorkerAssignment], texts: Dict[int, str]) -> str:
    """Join texts in partition order, then segment order, with single spaces. Missing entries count as empty."""
    ordered = [texts.get(seg.index, "") for a in assignments for seg in a.segments]
    return " ".join(ordered)


def dispatch_segments(
    segments: Sequence[Segment],
    endpoints: Sequence[str],
    transcribe: TranscribeFn,
    *,
    policy: str = BEST_EFFORT,
    on_segment_done: Optional[SegmentDoneFn] = None,
) -> DispatchOutcome:
    """Transcribe every segment on its assigned worker, all concurrently, and merge in chronological order.

    Under best-effort a failed call leaves an empty placeholder; if every call fails the whole
    dispatch raises WorkerCallFailure. Under fail-fast the first failure is raised.
    """
    assignments = plan_assignments(segments, endpoints)
    total = len(segments)
    if total == 0:
        return DispatchOutcome(text="", segments_total=0)

    texts: Dict[int, str] = {}
    failed: List[int] = []
    completed = 0
    progress_lock = threading.Lock()

    def _segment_finished() -> None:
        nonlocal completed
        with progress_lock:
            completed += 1
            if on_segment_done is not None:
                on_segment_done(completed, total)

    work = [(a.endpoint, seg) for a in assignments if a.segments for seg in a.segments]
    logger.info(
        "dispatch_started segments=%d partitions=%d",
        total,
        sum(1 for a in assignments if a.segments),
    )

    executor = ThreadPoolExecutor(max_workers=len(work), thread_name_prefix="segment")
    try:
        future_to_segment = {
            executor.submit(transcribe, endpoint, seg): (endpoint, seg)
            for endpoint, seg in work
        }
        for future in as_completed(future_to_segment):
            endpoint, seg = future_to_segment[future]
            try:
                texts[seg.index] = future.result()
            except WorkerCallFailure as e:
                if policy == FAIL_FAST:
                    for pending in future_to_segment:
                        pending.cancel()
                    raise
                logger.warning(
                    "segment_transcription_failed segment=%d endpoint=%s error=%s",
                    seg.index,
                    endpoint,
                    e,
                )
                texts[seg.index] = ""
                failed.append(seg.index)
            _segment_finished()
    finally:
        executor.shutdown(wait=True, cancel_futures=True)

    failed.sort()
    if len(failed) == total:
        raise WorkerCallFailure(f"All workers failed: none of {total} segments could be transcribed")

    return DispatchOutcome(text=merge_texts(assignments, texts), segments_total=total, failed=failed)
