"""Pipeline error taxonomy and the API's generic 500 conversion."""
import logging

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """Base class for failures raised while a job moves through the pipeline."""


class SegmentationFailure(PipelineError):
    """The external splitting tool could not be started or exited non-zero. Fatal to the job."""


class WorkerCallFailure(PipelineError):
    """A single worker call failed or timed out. Tolerated per segment under the best-effort policy."""

    def __init__(self, message: str, segment_index: int | None = None):
        super().__init__(message)
        self.segment_index = segment_index


class DerivationFailure(PipelineError):
    """The summary or quiz provider errored. Fatal to the job."""


class MalformedDerivationOutput(PipelineError):
    """The quiz provider returned unparseable or structurally invalid data. The job keeps going with an empty quiz."""


class InvalidTransition(ValueError):
    """A job was asked to move to a status its current status does not allow."""


def as_http_500(e: Exception) -> HTTPException:
    """Log exception and return a generic 500 HTTPException (no internal details leaked).
    Why available: Centralized error handling so API never leaks stack traces or internal state to clients."""
    logger.error("unhandled_api_error", exc_info=e)
    return HTTPException(status_code=500, detail="Internal server error")
