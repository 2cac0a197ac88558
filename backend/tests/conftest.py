"""Pytest setup: keep temp files in the workspace and share a small seed history."""
from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest

from backend.app.models.events import HiddenNewsPublished, NewsPublished


def pytest_sessionstart(session) -> None:
    """Redirect temp files to a writable workspace path for tests."""
    tmp_root = Path(__file__).resolve().parent / ".tmp"
    tmp_root.mkdir(parents=True, exist_ok=True)
    for key in ("TMPDIR", "TEMP", "TMP"):
        os.environ[key] = str(tmp_root)
    tempfile.tempdir = str(tmp_root)


@pytest.fixture
def seed_history():
    return [
        NewsPublished(date="2025-01-01", icon="BrainCircuit", title="Lab announces model", description="A new frontier model."),
        NewsPublished(date="2025-01-03", icon="Cpu", title="Chip export rules", description="New export limits."),
        HiddenNewsPublished(date="2025-01-04", icon="ShieldCheck", title="Covert compute buildout", description="Secret."),
    ]
