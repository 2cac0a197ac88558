"""App config: provider/model selection and env overrides.

Per-provider env overrides: GEMINI_API_KEY, GEMINI_BASE_URL, GEMINI_TIMEOUT.
Model selection: TAKEOFF_MODEL (see shared.config.DEFAULT_MODEL).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from shared.config import DEFAULT_MODEL, MAX_PENDING_CHARS

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"
# Streaming calls can run long on large histories; default 5 minutes
DEFAULT_GEMINI_TIMEOUT = 300.0


def env_flag(name: str, default: bool = False, environ: Mapping[str, str] | None = None) -> bool:
    """Read boolean env values from common truthy/falsey forms."""
    env = os.environ if environ is None else environ
    val = env.get(name, "").strip().lower()
    if not val:
        return default
    return val in ("1", "true", "yes", "on")


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default


@dataclass(frozen=True)
class ForecastSettings:
    """Runtime settings for one forecaster/provider pairing."""

    model: str
    api_key: str
    base_url: str
    timeout: float
    replay_strict: bool
    max_pending_chars: int


def load_forecast_settings(environ: Mapping[str, str] | None = None) -> ForecastSettings:
    env = os.environ if environ is None else environ
    model = env.get("TAKEOFF_MODEL", "").strip() or DEFAULT_MODEL
    base_url = env.get("GEMINI_BASE_URL", "").strip() or DEFAULT_GEMINI_BASE_URL
    return ForecastSettings(
        model=model,
        api_key=env.get("GEMINI_API_KEY", "").strip(),
        base_url=base_url.rstrip("/"),
        timeout=_env_float(env, "GEMINI_TIMEOUT", DEFAULT_GEMINI_TIMEOUT),
        replay_strict=env_flag("TAKEOFF_REPLAY_STRICT", default=True, environ=env),
        max_pending_chars=_env_int(env, "TAKEOFF_MAX_PENDING_CHARS", MAX_PENDING_CHARS),
    )
