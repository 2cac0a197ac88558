"""Seed scenario loader with module-level cache."""
from __future__ import annotations

import logging
import re
from datetime import date as _date
from pathlib import Path
from typing import Any, Iterable

import yaml

from backend.app.core.errors import SchemaViolation
from backend.app.core.timeline import sort_and_dedupe
from backend.app.models.event_utils import validate_event_array
from backend.app.models.events import EventModel
from shared.config import SCENARIO_DIR

logger = logging.getLogger(__name__)

_SCENARIO_CACHE: dict[Path, list[EventModel]] = {}


def _normalize_name(value: str) -> str:
    raw = (value or "").strip().lower()
    raw = re.sub(r"[^a-z0-9]+", "_", raw)
    return raw.strip("_")


def _resolve_dir(scenario_dir: str | Path | None) -> Path:
    p = Path(scenario_dir or SCENARIO_DIR)
    if p.is_absolute():
        return p
    return Path(__file__).resolve().parents[3] / p


def _candidate_files(base: Path, key: str) -> Iterable[Path]:
    for ext in (".yaml", ".yml"):
        yield base / f"{key}{ext}"
    for pattern in ("*.yaml", "*.yml"):
        for p in sorted(base.glob(pattern)):
            if _normalize_name(p.stem) == key:
                yield p


def _coerce_dates(value: Any) -> Any:
    """YAML turns unquoted 2024-06-01 into a date; events want the string back."""
    if isinstance(value, _date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _coerce_dates(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_coerce_dates(v) for v in value]
    return value


def _read_events(path: Path) -> list[EventModel]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("events")
    if not isinstance(raw, list):
        raise SchemaViolation(f"Scenario {path.name} must be a list of events or a mapping with 'events'")
    return sort_and_dedupe(validate_event_array(_coerce_dates(raw), context=f"scenario {path.name}"))


def list_scenarios(scenario_dir: str | Path | None = None) -> list[str]:
    base = _resolve_dir(scenario_dir)
    if not base.is_dir():
        return []
    return sorted({p.stem for pattern in ("*.yaml", "*.yml") for p in base.glob(pattern)})


def load_seed_scenario(name: str = "default", scenario_dir: str | Path | None = None) -> list[EventModel]:
    """Load, validate and close the seed history for ``name``.

    Raises FileNotFoundError if no matching file exists and
    :class:`SchemaViolation` if any seed event is invalid.
    """
    base = _resolve_dir(scenario_dir)
    key = _normalize_name(name)
    for path in _candidate_files(base, key):
        if not path.is_file():
            continue
        resolved = path.resolve()
        cached = _SCENARIO_CACHE.get(resolved)
        if cached is None:
            cached = _read_events(resolved)
            _SCENARIO_CACHE[resolved] = cached
            logger.info("Loaded scenario %s (%d event(s))", path.name, len(cached))
        return list(cached)
    raise FileNotFoundError(f"No scenario named '{name}' in {base}")


def clear_scenario_cache() -> None:
    _SCENARIO_CACHE.clear()
