"""
Split an uploaded media file into fixed-duration segments with ffmpeg.
Segments come back ordered by their numeric suffix, which is chronological order.
"""
import logging
import os
import re
import subprocess
from pathlib import Path
from typing import List

from videoquiz.core.errors import SegmentationFailure
from videoquiz.ingest.jobs import Segment

logger = logging.getLogger(__name__)

SEGMENT_PREFIX = "chunk_"
SEGMENT_RE = re.compile(r"^chunk_(\d+)\.[^.]+$")
STDERR_TAIL_CHARS = 500


def build_segment_command(
    input_path: Path,
    output_dir: Path,
    target_seconds: int,
    ffmpeg_bin: str = "ffmpeg",
) -> List[str]:
    """Return the ffmpeg argv that writes output_dir/chunk_000<ext>, chunk_001<ext>, ... of about target_seconds each."""
    ext = Path(input_path).suffix or ".mp4"
    return [
        ffmpeg_bin,
        "-hide_banner",
        "-loglevel", "error",
        "-i", str(input_path),
        "-f", "segment",
        "-segment_time", str(target_seconds),
        "-reset_timestamps", "1",
        str(Path(output_dir) / f"{SEGMENT_PREFIX}%03d{ext}"),
    ]


def list_segments(output_dir: Path) -> List[Segment]:
    """Collect segment files in output_dir, ordered by numeric suffix (not directory order), re-indexed from 0."""
    numbered = []
    for name in os.listdir(output_dir):
        m = SEGMENT_RE.match(name)
        if m and os.path.isfile(os.path.join(output_dir, name)):
            numbered.append((int(m.group(1)), name))
    numbered.sort()
    return [Segment(index=i, path=Path(output_dir) / name) for i, (_, name) in enumerate(numbered)]


def segment_media(
    input_path: Path,
    output_dir: Path,
    target_seconds: int,
    ffmpeg_bin: str = "ffmpeg",
) -> List[Segment]:
    """Run ffmpeg's segment muxer on input_path and return the produced segments in chronological order.
    Raises SegmentationFailure if ffmpeg cannot be started or exits non-zero. Partial output is left for the caller to remove."""
    cmd = build_segment_command(input_path, output_dir, target_seconds, ffmpeg_bin)
    logger.info("segmentation_started input=%s target_seconds=%s", input_path, target_seconds)

    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as e:
        raise SegmentationFailure(f"Could not start {ffmpeg_bin}: {e}") from e

    if proc.returncode != 0:
        tail = (proc.stderr or "").strip()[-STDERR_TAIL_CHARS:]
        raise SegmentationFailure(
            f"Segmentation failed: {ffmpeg_bin} exited with status {proc.returncode}"
            + (f": {tail}" if tail else "")
        )

    segments = list_segments(output_dir)
    logger.info("segmentation_complete input=%s segments=%d", input_path, len(segments))
    return segments


def remove_partial_segments(output_dir: Path) -> int:
    """Delete segment files left behind by a failed run. Returns how many were removed."""
    removed = 0
    if not os.path.isdir(output_dir):
        return removed
    for name in os.listdir(output_dir):
        if not name.startswith(SEGMENT_PREFIX):
            continue
        try:
            os.remove(os.path.join(output_dir, name))
            removed += 1
        except OSError:
            logger.warning("partial_segment_remove_failed file=%s", name, exc_info=True)
    return removed
