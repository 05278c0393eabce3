"""OpenAI client for chat completions and audio transcription (api_key from config)."""
from typing import Any

from openai import OpenAI

from videoquiz.core.config import settings

_openai_client: Any = None


def get_openai_client() -> OpenAI:
    """Return a singleton OpenAI client configured with api_key from settings.
    Why available: The summary, quiz and transcription calls all share one configured client."""
    global _openai_client
    if _openai_client is None:
        _openai_client = OpenAI(api_key=settings.openai_api_key)
    return _openai_client
