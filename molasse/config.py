from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Mapping


PALETTE = {
    "background": "#0c0a09",
    "sidebar": "#1c1917",
    "panel": "#1c1917",
    "primary": "#f59e0b",
    "secondary": "#78350f",
    "accent": "#fbbf24",
    "text": "#e7e5e4",
    "success": "#059669",
    "warning": "#ea580c",
}

DEFAULT_ADVISOR_MODEL = "gemini-3-pro-preview"
DEFAULT_LAB_MODEL = "gemini-3-flash-preview"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_THINKING_BUDGET = 32768


@dataclass(frozen=True)
class Settings:
    api_key: str = ""
    advisor_model: str = DEFAULT_ADVISOR_MODEL
    lab_model: str = DEFAULT_LAB_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    thinking_budget: int = DEFAULT_THINKING_BUDGET
    log_level: str = "INFO"

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key.strip())


def _lookup(name: str, environ: Mapping[str, str], secrets: Mapping[str, object]) -> str | None:
    if name in secrets:
        value = secrets[name]
        return None if value is None else str(value)
    return environ.get(name)


def load_settings(
    environ: Mapping[str, str] | None = None,
    secrets: Mapping[str, object] | None = None,
) -> Settings:
    """Read settings from Streamlit secrets, falling back to the environment.

    Secrets win over environment variables so a deployed app can be configured
    without touching the host environment.
    """
    env = os.environ if environ is None else environ
    sec = {} if secrets is None else secrets

    api_key = _lookup("GEMINI_API_KEY", env, sec) or _lookup("API_KEY", env, sec) or ""

    raw_budget = _lookup("MOLASSE_THINKING_BUDGET", env, sec)
    if raw_budget is None or not raw_budget.strip():
        thinking_budget = DEFAULT_THINKING_BUDGET
    else:
        try:
            thinking_budget = int(raw_budget)
        except ValueError as exc:
            raise ValueError(f"MOLASSE_THINKING_BUDGET must be an integer, got {raw_budget!r}.") from exc

    return Settings(
        api_key=api_key,
        advisor_model=_lookup("MOLASSE_ADVISOR_MODEL", env, sec) or DEFAULT_ADVISOR_MODEL,
        lab_model=_lookup("MOLASSE_LAB_MODEL", env, sec) or DEFAULT_LAB_MODEL,
        image_model=_lookup("MOLASSE_IMAGE_MODEL", env, sec) or DEFAULT_IMAGE_MODEL,
        thinking_budget=thinking_budget,
        log_level=(_lookup("MOLASSE_LOG_LEVEL", env, sec) or "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
