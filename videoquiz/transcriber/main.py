"""FastAPI service run by each worker pool member.

Run with:
uvicorn videoquiz.transcriber.main:app --host 0.0.0.0 --port 5001

POST /process takes one segment as a multipart `file` field and answers
{"text": "..."} on success or {"error": "..."} with a non-2xx status.
"""
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse

from videoquiz.core.config import settings
from videoquiz.models.schemas import TranscribeResponse
from videoquiz.observability.middleware import RequestTimingMiddleware
from videoquiz.transcriber.audio import (
    AudioExtractionError,
    TranscriptionError,
    extract_audio,
    transcribe_audio,
)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Segment Transcription Worker")
app.add_middleware(RequestTimingMiddleware)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/process", response_model=TranscribeResponse)
async def process(file: UploadFile = File(...), index: Optional[int] = Form(None)):
    """Extract audio from the segment with ffmpeg, transcribe it, and return the text. Temp files are always removed."""
    tmp_dir = Path(tempfile.mkdtemp(prefix="segment_"))
    try:
        suffix = Path(file.filename or "").suffix or ".mp4"
        segment_path = tmp_dir / f"segment{suffix}"
        content = await file.read()
        if not content:
            return JSONResponse(status_code=400, content={"error": "Empty segment"})
        segment_path.write_bytes(content)

        logger.info("segment_received segment=%s bytes=%d", index, len(content))
        audio_path = extract_audio(segment_path)
        text = transcribe_audio(audio_path)
        logger.info("segment_transcribed segment=%s chars=%d", index, len(text))
        return TranscribeResponse(text=text)
    except (AudioExtractionError, TranscriptionError) as e:
        logger.error("segment_failed segment=%s error=%s", index, e)
        return JSONResponse(status_code=500, content={"error": "Worker processing failed"})
    finally:
        await file.close()
        shutil.rmtree(tmp_dir, ignore_errors=True)
