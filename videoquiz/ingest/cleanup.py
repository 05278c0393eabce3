import logging
import os
import shutil
from pathlib import Path
from typing import Iterable

from videoquiz.ingest.jobs import Job

logger = logging.getLogger(__name__)


def remove_path(path: Path) -> bool:
    """Remove a file or directory tree. Missing paths count as removed; OSErrors are logged, not raised."""
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        elif os.path.lexists(path):
            os.remove(path)
        return True
    except OSError:
        logger.warning("cleanup_failed path=%s", path, exc_info=True)
        return False


def remove_paths(paths: Iterable[Path]) -> bool:
    ok = True
    for p in paths:
        ok = remove_path(p) and ok
    return ok


def cleanup_job(job: Job) -> bool:
    """Delete the job's uploaded input and its segment directory, whatever the job's outcome.
    Returns False if anything could not be removed; the job's recorded result is never affected."""
    ok = remove_paths([job.input_path, job.work_dir])
    logger.info("job_cleaned_up job_id=%s complete=%s", job.job_id, ok)
    return ok
