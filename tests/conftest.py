import json
import os
import sys
import tempfile
import threading
from pathlib import Path
from types import SimpleNamespace

import pytest

# Ensure repo root is on sys.path so `import videoquiz...` works in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings are read at import time; keep test runs away from ./data and real workers.
os.environ.setdefault("DATA_ROOT", tempfile.mkdtemp(prefix="videoquiz-test-"))
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("WORKER_ENDPOINTS", "http://w0/process,http://w1/process,http://w2/process")
os.environ.setdefault("RATE_LIMIT_REQUESTS", "1000")

from videoquiz.ingest.jobs import Segment  # noqa: E402
from videoquiz.ingest.segmenter import list_segments  # noqa: E402
from videoquiz.models.schemas import QuizQuestion  # noqa: E402


def pretty_json(obj) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False, sort_keys=True)


# -------------------------
# Fakes
# -------------------------


def fake_chat_client(content=None, exc=None):
    """Stand-in for the OpenAI client: chat.completions.create returns `content` or raises `exc`; calls are recorded."""
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        if exc is not None:
            raise exc
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None)

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    client.calls = calls
    return client


class FakeGateway:
    """Records derivation calls; summary/quiz behaviour is configurable per test."""

    def __init__(self, summary="A summary.", quiz=None, summary_exc=None, quiz_exc=None):
        self.summary = summary
        self.quiz = quiz if quiz is not None else [
            QuizQuestion(question="Q?", options=["a", "b", "c", "d"], correct_index=1)
        ]
        self.summary_exc = summary_exc
        self.quiz_exc = quiz_exc
        self.calls = []

    def summarize(self, transcript):
        self.calls.append(("summarize", transcript))
        if self.summary_exc is not None:
            raise self.summary_exc
        return self.summary

    def make_quiz(self, transcript):
        self.calls.append(("make_quiz", transcript))
        if self.quiz_exc is not None:
            raise self.quiz_exc
        return self.quiz


class FakeTranscriber:
    """Worker call stand-in: returns `seg<index>` text, fails for indices in `fail`, thread-safe call log."""

    def __init__(self, fail=(), texts=None):
        self.fail = set(fail)
        self.texts = texts or {}
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, endpoint: str, segment: Segment) -> str:
        from videoquiz.core.errors import WorkerCallFailure

        with self._lock:
            self.calls.append((endpoint, segment.index))
        if segment.index in self.fail:
            raise WorkerCallFailure(f"boom {segment.index}", segment.index)
        return self.texts.get(segment.index, f"seg{segment.index}")


def make_segmenter(count: int):
    """Fake segmenter that writes `count` chunk files into output_dir like ffmpeg would."""

    def segmenter(input_path, output_dir, target_seconds, ffmpeg_bin="ffmpeg"):
        os.makedirs(output_dir, exist_ok=True)
        for i in range(count):
            (Path(output_dir) / f"chunk_{i:03d}.mp4").write_bytes(b"x" * (i + 1))
        return list_segments(Path(output_dir))

    return segmenter


@pytest.fixture
def segments_factory(tmp_path):
    def _make(count: int):
        out = []
        for i in range(count):
            p = tmp_path / f"chunk_{i:03d}.mp4"
            p.write_bytes(b"segment")
            out.append(Segment(index=i, path=p))
        return out

    return _make


@pytest.fixture
def upload_file(tmp_path):
    def _make(name: str = "input.mp4"):
        p = tmp_path / "uploads" / name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(b"fake video bytes")
        return p

    return _make


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """
    Attach request/response payloads into pytest-html report.

    Tests store payloads as item._api_logs = [{"title": ..., "request": ..., "response": ...}].
    """
    outcome = yield
    rep = outcome.get_result()

    if rep.when != "call":
        return

    api_logs = getattr(item, "_api_logs", None)
    if not api_logs:
        return

    extras = getattr(rep, "extras", [])
    try:
        from pytest_html import extras as html_extras
    except ImportError:
        return

    for entry in api_logs:
        title = entry.get("title", "API Call")
        html = (
            f"<h4>{title}</h4>"
            f"<details><summary><b>Request</b></summary><pre>{pretty_json(entry.get('request', {}))}</pre></details>"
            f"<details><summary><b>Response</b></summary><pre>{pretty_json(entry.get('response', {}))}</pre></details>"
        )
        extras.append(html_extras.html(html))
    rep.extras = extras
