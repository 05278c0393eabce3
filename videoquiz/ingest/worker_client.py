"""HTTP client for the remote transcription workers: one POST per segment, text back."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from videoquiz.core.errors import WorkerCallFailure
from videoquiz.ingest.jobs import Segment

logger = logging.getLogger(__name__)


class WorkerClient:
    """Sends a segment's bytes to a worker endpoint and returns the extracted text.

    Every call is a single attempt. Transport errors, timeouts, non-2xx responses
    and payloads without a string ``text`` field all raise WorkerCallFailure.
    """

    def __init__(
        self,
        *,
        timeout: float = 600.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._client = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "WorkerClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(payload, dict):
            return str(payload.get("error") or payload.get("detail") or payload)
        return str(payload)

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def transcribe(self, endpoint: str, segment: Segment) -> str:
        try:
            with open(segment.path, "rb") as fh:
                response = self._client.post(
                    endpoint,
                    files={"file": (segment.path.name, fh, "application/octet-stream")},
                    data={"index": str(segment.index)},
                )
        except httpx.TimeoutException as e:
            raise WorkerCallFailure(f"Worker {endpoint} timed out on segment {segment.index}", segment.index) from e
        except (httpx.HTTPError, OSError) as e:
            raise WorkerCallFailure(f"Worker {endpoint} call failed for segment {segment.index}: {e}", segment.index) from e

        if response.status_code >= 300:
            raise WorkerCallFailure(
                f"Worker {endpoint} returned {response.status_code} for segment {segment.index}: "
                f"{self._error_detail(response)}",
                segment.index,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise WorkerCallFailure(f"Worker {endpoint} returned non-JSON body for segment {segment.index}", segment.index) from e

        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise WorkerCallFailure(f"Worker {endpoint} response has no text for segment {segment.index}", segment.index)
        return text.strip()
