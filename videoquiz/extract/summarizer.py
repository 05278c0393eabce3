import logging
from typing import Any, Optional

from videoquiz.core.config import settings
from videoquiz.core.errors import DerivationFailure
from videoquiz.core.openai_client import get_openai_client
from videoquiz.prompts.loader import get_system_prompt, get_user_prompt

logger = logging.getLogger(__name__)


def summarize(transcript: str, client: Optional[Any] = None) -> str:
    """Ask the chat model for a short natural-language summary of the merged transcript.
    Raises DerivationFailure when the provider errors or returns nothing; the job then ends in error.
    Why available: One of the two derived artifacts every finished job carries."""
    try:
        oc = client or get_openai_client()
        system_prompt = get_system_prompt("summary")
        user_msg = get_user_prompt("summary").replace("<<TRANSCRIPT>>", transcript)

        resp = oc.chat.completions.create(
            model=settings.chat_model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_msg},
            ],
            temperature=0.2,
        )
        summary = (resp.choices[0].message.content or "").strip()
    except Exception as e:
        raise DerivationFailure(f"Summary generation failed: {e}") from e

    if not summary:
        raise DerivationFailure("Summary generation failed: provider returned an empty summary")

    u = getattr(resp, "usage", None)
    logger.info(
        "summary_generated chars=%d prompt_tokens=%s completion_tokens=%s",
        len(summary),
        getattr(u, "prompt_tokens", 0) or 0,
        getattr(u, "completion_tokens", 0) or 0,
    )
    return summary
