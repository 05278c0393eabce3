from __future__ import annotations

import httpx
import pytest

from videoquiz.core.errors import WorkerCallFailure
from videoquiz.ingest.worker_client import WorkerClient

ENDPOINT = "http://worker-1:5001/process"


def _client(handler) -> WorkerClient:
    return WorkerClient(http_client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_transcribe_posts_segment_and_returns_text(segments_factory):
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["method"] = request.method
        captured["body"] = request.content
        return httpx.Response(200, json={"text": "  hello world \n"})

    segment = segments_factory(3)[2]
    text = _client(handler).transcribe(ENDPOINT, segment)

    assert text == "hello world"
    assert captured["url"] == ENDPOINT
    assert captured["method"] == "POST"
    body = captured["body"]
    assert b'name="file"' in body
    assert b"chunk_002.mp4" in body
    assert b'name="index"' in body
    assert b"segment" in body


def test_transcribe_error_status_raises_with_detail(segments_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "Worker processing failed"})

    with pytest.raises(WorkerCallFailure) as exc:
        _client(handler).transcribe(ENDPOINT, segments_factory(1)[0])
    assert "500" in str(exc.value)
    assert "Worker processing failed" in str(exc.value)
    assert exc.value.segment_index == 0


def test_transcribe_timeout_is_a_failed_segment(segments_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(WorkerCallFailure, match="timed out"):
        _client(handler).transcribe(ENDPOINT, segments_factory(1)[0])


def test_transcribe_connection_error(segments_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(WorkerCallFailure, match="call failed"):
        _client(handler).transcribe(ENDPOINT, segments_factory(1)[0])


def test_transcribe_missing_text_field(segments_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"result": "nope"})

    with pytest.raises(WorkerCallFailure, match="no text"):
        _client(handler).transcribe(ENDPOINT, segments_factory(1)[0])


def test_transcribe_non_json_body(segments_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    with pytest.raises(WorkerCallFailure, match="non-JSON"):
        _client(handler).transcribe(ENDPOINT, segments_factory(1)[0])


def test_transcribe_missing_segment_file(tmp_path):
    from videoquiz.ingest.jobs import Segment

    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never reached
        return httpx.Response(200, json={"text": "x"})

    with pytest.raises(WorkerCallFailure):
        _client(handler).transcribe(ENDPOINT, Segment(index=0, path=tmp_path / "gone.mp4"))
