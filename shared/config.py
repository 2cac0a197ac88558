"""Shared configuration constants used by backend and CLI."""
from __future__ import annotations

import os
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# Project root: resolve relative to this file's location
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Default generative model. Override: TAKEOFF_MODEL
DEFAULT_MODEL = os.environ.get("TAKEOFF_MODEL", "gemini-2.5-flash").strip() or "gemini-2.5-flash"

# Seed scenarios (YAML). Override: TAKEOFF_SCENARIO_DIR
SCENARIO_DIR = os.environ.get(
    "TAKEOFF_SCENARIO_DIR",
    str(_PROJECT_ROOT / "backend" / "app" / "scenario" / "data"),
)

# Upper bound on provider text held while waiting for a complete JSON document
MAX_PENDING_CHARS = _env_int("TAKEOFF_MAX_PENDING_CHARS", 1_000_000)

LOG_LEVEL = os.environ.get("TAKEOFF_LOG_LEVEL", "INFO").strip().upper() or "INFO"
