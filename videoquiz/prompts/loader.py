"""
Versioned prompt loader: reads prompts from videoquiz/prompts/{version}/{component}.yaml.
Use PROMPT_VERSION (default v1) to select version.
"""
from pathlib import Path

import yaml

# Base path: videoquiz/prompts/ (next to this file)
_PROMPTS_DIR = Path(__file__).resolve().parent


def load_prompts(
    component: str,
    version: str | None = None,
) -> dict[str, str]:
    """Load prompt templates for a component. Returns dict with keys "system", "user" (user optional); values may contain placeholders like <<TRANSCRIPT>> and <<NUM_QUESTIONS>>.
    Why available: Summary and quiz prompts can be tuned per version without code changes."""
    if version is None:
        from videoquiz.core.config import settings
        version = settings.prompt_version or "v1"

    path = _PROMPTS_DIR / version / f"{component}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Prompt file not found: {path}")

    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    out: dict[str, str] = {}
    for key in ("system", "user"):
        val = data.get(key)
        if val is not None:
            out[key] = val.strip() if isinstance(val, str) else str(val).strip()
    return out


def get_system_prompt(component: str, version: str | None = None) -> str:
    """Return the 'system' prompt template for a component (summary, quiz). Raises ValueError if missing."""
    prompts = load_prompts(component, version=version)
    if "system" not in prompts:
        raise ValueError(f"Component {component} has no 'system' prompt in version {version}")
    return prompts["system"]


def get_user_prompt(component: str, version: str | None = None) -> str:
    """Return the 'user' prompt template for a component. Raises ValueError if missing."""
    prompts = load_prompts(component, version=version)
    if "user" not in prompts:
        raise ValueError(f"Component {component} has no 'user' prompt in version {version}")
    return prompts["user"]
