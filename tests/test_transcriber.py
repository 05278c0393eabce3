"""Tests for the segment transcription worker service."""
import subprocess
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from videoquiz.transcriber import audio
from videoquiz.transcriber import main as worker_main
from videoquiz.transcriber.audio import (
    AudioExtractionError,
    TranscriptionError,
    extract_audio,
    transcribe_audio,
)


@pytest.fixture
def client():
    return TestClient(worker_main.app)


def test_process_returns_text(client, monkeypatch):
    seen = {}

    def fake_extract(path):
        seen["segment"] = Path(path)
        assert Path(path).read_bytes() == b"segment bytes"
        return Path(path).with_suffix(".mp3")

    monkeypatch.setattr(worker_main, "extract_audio", fake_extract)
    monkeypatch.setattr(worker_main, "transcribe_audio", lambda p: "hello there")

    resp = client.post(
        "/process",
        files={"file": ("chunk_004.mp4", b"segment bytes", "video/mp4")},
        data={"index": "4"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"text": "hello there"}
    assert not seen["segment"].parent.exists()


def test_process_empty_segment(client):
    resp = client.post("/process", files={"file": ("chunk_000.mp4", b"", "video/mp4")})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Empty segment"}


@pytest.mark.parametrize("exc", [AudioExtractionError("no audio"), TranscriptionError("quota")])
def test_process_failure_is_500(client, monkeypatch, exc):
    def boom(path):
        raise exc

    monkeypatch.setattr(worker_main, "extract_audio", boom)
    resp = client.post("/process", files={"file": ("chunk_000.mp4", b"x", "video/mp4")})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Worker processing failed"}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_extract_audio_builds_mp3_command(tmp_path, monkeypatch):
    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr(audio.subprocess, "run", run)
    out = extract_audio(tmp_path / "segment.mp4", ffmpeg_bin="ffmpeg")

    assert out == tmp_path / "segment.mp3"
    cmd = calls[0]
    assert "-vn" in cmd
    assert cmd[cmd.index("-acodec") + 1] == "libmp3lame"
    assert cmd[-1] == str(out)


def test_extract_audio_nonzero_exit(tmp_path, monkeypatch):
    monkeypatch.setattr(
        audio.subprocess,
        "run",
        lambda cmd, **kw: subprocess.CompletedProcess(cmd, 1, stdout="", stderr="no audio stream"),
    )
    with pytest.raises(AudioExtractionError, match="no audio stream"):
        extract_audio(tmp_path / "segment.mp4")


def test_transcribe_audio_uses_client(tmp_path):
    mp3 = tmp_path / "segment.mp3"
    mp3.write_bytes(b"id3")
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        return "  spoken words \n"

    fake = SimpleNamespace(audio=SimpleNamespace(transcriptions=SimpleNamespace(create=create)))
    assert transcribe_audio(mp3, client=fake) == "spoken words"
    assert calls[0]["response_format"] == "text"


def test_transcribe_audio_provider_error(tmp_path):
    mp3 = tmp_path / "segment.mp3"
    mp3.write_bytes(b"id3")

    def create(**kwargs):
        raise RuntimeError("401 unauthorized")

    fake = SimpleNamespace(audio=SimpleNamespace(transcriptions=SimpleNamespace(create=create)))
    with pytest.raises(TranscriptionError):
        transcribe_audio(mp3, client=fake)
