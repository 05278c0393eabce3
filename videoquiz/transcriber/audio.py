"""
Audio extraction and speech-to-text for one segment, as run by a pool worker.
"""
import logging
import subprocess
from pathlib import Path
from typing import Any, Optional

from videoquiz.core.config import settings
from videoquiz.core.openai_client import get_openai_client

logger = logging.getLogger(__name__)


class AudioExtractionError(RuntimeError):
    """ffmpeg could not turn the segment into an mp3."""


class TranscriptionError(RuntimeError):
    """The speech-to-text provider failed."""


def extract_audio(video_path: Path, ffmpeg_bin: Optional[str] = None) -> Path:
    """Strip the video stream and encode the audio track as mp3 next to the input. Returns the mp3 path."""
    ffmpeg_bin = ffmpeg_bin or settings.ffmpeg_bin
    output = Path(video_path).with_suffix(".mp3")
    cmd = [
        ffmpeg_bin, "-y",
        "-hide_banner",
        "-loglevel", "error",
        "-i", str(video_path),
        "-vn",
        "-acodec", "libmp3lame",
        str(output),
    ]
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as e:
        raise AudioExtractionError(f"Could not start {ffmpeg_bin}: {e}") from e

    if proc.returncode != 0:
        raise AudioExtractionError(f"FFmpeg exited with code {proc.returncode}: {(proc.stderr or '').strip()[-300:]}")
    logger.info("audio_extracted audio=%s", output.name)
    return output


def transcribe_audio(audio_path: Path, client: Optional[Any] = None) -> str:
    """Send the mp3 to the OpenAI transcription endpoint and return plain text."""
    try:
        oc = client or get_openai_client()
        with open(audio_path, "rb") as fh:
            result = oc.audio.transcriptions.create(
                file=fh,
                model=settings.transcribe_model,
                response_format="text",
            )
    except Exception as e:
        raise TranscriptionError(f"Transcription failed: {e}") from e
    # response_format="text" yields a str; older SDKs return an object with .text
    text = result if isinstance(result, str) else getattr(result, "text", "")
    return (text or "").strip()
