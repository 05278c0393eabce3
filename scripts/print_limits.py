#!/usr/bin/env python3
"""Print upload, pipeline and API limits from config. Run from repo root: python scripts/print_limits.py"""
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from videoquiz.core.config import settings


def main():
    """Print MAX_UPLOAD_MB, SEGMENT_SECONDS, worker pool, failure policy, quiz size and rate limit."""
    print("Pipeline & API limits")
    print("---------------------")
    print(f"  MAX_UPLOAD_MB          = {settings.max_upload_mb} MB (max size per uploaded file)")
    print(f"  SEGMENT_SECONDS        = {settings.segment_seconds} s (target segment duration)")
    print(f"  WORKER_ENDPOINTS       = {len(settings.worker_endpoints)} worker(s)")
    for endpoint in settings.worker_endpoints:
        print(f"                           {endpoint}")
    print(f"  WORKER_TIMEOUT_SECONDS = {settings.worker_timeout_seconds} s (per segment call)")
    print(f"  SEGMENT_FAILURE_POLICY = {settings.segment_failure_policy}")
    print(f"  QUIZ_QUESTIONS         = {settings.quiz_questions}")
    print(f"  Rate limit             = {settings.rate_limit_requests} requests / {settings.rate_limit_window_seconds} s (per client IP)")
    print("")
    print("Env: MAX_UPLOAD_MB, SEGMENT_SECONDS, WORKER_ENDPOINTS, ... (see .env.example)")


if __name__ == "__main__":
    main()
