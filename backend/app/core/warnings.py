"""Warning aggregation helpers for non-fatal diagnostics."""
from __future__ import annotations

import logging
from typing import Any

from backend.app.core.errors import OrderingInconsistency

logger = logging.getLogger(__name__)


def _get_container(target: Any) -> list | None:
    """Return a mutable warnings list from target (list, dict, or object with .warnings)."""
    if target is None:
        return None
    if isinstance(target, list):
        return target
    if isinstance(target, dict):
        warnings = target.get("warnings")
        if warnings is None:
            warnings = []
            target["warnings"] = warnings
        return warnings
    if hasattr(target, "warnings"):
        return getattr(target, "warnings", None)
    return None


def add_warning(target: Any, message: str) -> None:
    """Append a warning to the target's warning list (deduped)."""
    if not message:
        return
    warnings = _get_container(target)
    if warnings is None:
        return
    if message not in warnings:
        warnings.append(message)


def report_inconsistency(
    issue: OrderingInconsistency,
    diagnostics: list[OrderingInconsistency] | None = None,
    warnings: Any = None,
) -> None:
    """Log an ordering inconsistency and hand it to whichever sinks the caller supplied."""
    logger.warning("Dropping orphan patch: %s", issue.describe())
    if diagnostics is not None and issue not in diagnostics:
        diagnostics.append(issue)
    add_warning(warnings, issue.describe())
