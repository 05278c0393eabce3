"""
Best-effort progress pub/sub keyed by subscription id.

Nothing is buffered for absent subscribers: an event published while nobody
is subscribed is dropped, and a late subscriber only sees later events.
"""
import logging
import queue
import threading
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# Pipeline milestones (percent complete).
UPLOAD_ACCEPTED = 0
PROCESSING_STARTED = 5
SEGMENTATION_COMPLETE = 15
TRANSCRIPT_MERGED = 85
SUMMARY_READY = 90
QUIZ_READY = 95
FINISHED = 100

SUBSCRIBER_QUEUE_SIZE = 256


@dataclass
class ProgressEvent:
    """One progress update. percent never decreases within a job."""

    subscription_id: str
    job_id: str
    percent: int
    message: str
    status: str

    def to_dict(self) -> dict:
        return asdict(self)


class ProgressChannel:
    """Fan-out of ProgressEvents to every queue currently subscribed under a subscription id."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[queue.Queue]] = {}
        self._lock = threading.Lock()

    def subscribe(self, subscription_id: str) -> queue.Queue:
        q: queue.Queue = queue.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        with self._lock:
            self._subscribers.setdefault(subscription_id, []).append(q)
        return q

    def unsubscribe(self, subscription_id: str, q: queue.Queue) -> None:
        with self._lock:
            queues = self._subscribers.get(subscription_id)
            if not queues:
                return
            if q in queues:
                queues.remove(q)
            if not queues:
                del self._subscribers[subscription_id]

    def subscriber_count(self, subscription_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(subscription_id, []))

    def publish(self, event: ProgressEvent) -> int:
        """Deliver event to current subscribers; returns how many received it."""
        with self._lock:
            queues = list(self._subscribers.get(event.subscription_id, []))
        delivered = 0
        for q in queues:
            try:
                q.put_nowait(event)
                delivered += 1
            except queue.Full:
                logger.warning("progress_subscriber_full subscription_id=%s", event.subscription_id)
        return delivered


class ProgressReporter:
    """Binds one job to its subscription id and clamps percent so it never goes backwards.
    Without a subscription id every report is dropped."""

    def __init__(self, channel: ProgressChannel, job_id: str, subscription_id: Optional[str]) -> None:
        self._channel = channel
        self._job_id = job_id
        self._subscription_id = subscription_id
        self._last = UPLOAD_ACCEPTED
        self._lock = threading.Lock()

    @property
    def last_percent(self) -> int:
        return self._last

    def report(self, percent: int, message: str, status: str = "processing") -> None:
        with self._lock:
            percent = max(self._last, min(FINISHED, int(percent)))
            self._last = percent
            if self._subscription_id is None:
                return
            self._channel.publish(
                ProgressEvent(
                    subscription_id=self._subscription_id,
                    job_id=self._job_id,
                    percent=percent,
                    message=message,
                    status=status,
                )
            )

    def segment_done(self, completed: int, total: int) -> None:
        """Spread per-segment completions over the band between segmentation and merge."""
        span = TRANSCRIPT_MERGED - SEGMENTATION_COMPLETE
        percent = SEGMENTATION_COMPLETE + (span * completed) // max(total, 1)
        self.report(percent, f"Transcribed segment {completed} of {total}")
