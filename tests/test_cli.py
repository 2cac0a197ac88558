"""Smoke and workflow tests for the takeoff CLI.

Run with: python -m pytest tests/test_cli.py -v
"""
from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import pytest

from backend.app.constants import SYSTEM_PROMPT
from backend.app.core.event_io import read_events_jsonl, write_events_jsonl
from backend.app.core.replay import save_tape
from backend.app.core.request_builder import build_request
from backend.app.models.events import NewsPublished
from backend.app.models.replay import ReplayChunk, ReplayMeta, ReplayRequest, ReplayTape
from takeoff.cli import main

_ROOT = Path(__file__).resolve().parent.parent


def _run_cli(*args: str, timeout: int = 30) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "takeoff", *args],
        capture_output=True,
        text=True,
        timeout=timeout,
        cwd=_ROOT,
    )


def _main(*args: str) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(list(args))
    return exc_info.value.code or 0


def _history(tmp_path: Path) -> Path:
    events = [
        NewsPublished(date="2025-01-01", icon="Landmark", title="Opening move", description="D"),
        NewsPublished(date="2025-01-03", icon="Cpu", title="Chips", description="D"),
    ]
    return write_events_jsonl(tmp_path / "history.jsonl", events)


class TestCLIHelp:
    """Verify that all subcommands register and print help without errors."""

    def test_main_help(self):
        result = _run_cli("--help")
        assert result.returncode == 0
        for name in ("aggregate", "prepare", "call", "parse", "replay", "record", "turn"):
            assert name in result.stdout

    def test_turn_help(self):
        result = _run_cli("turn", "--help")
        assert result.returncode == 0
        assert "--new-events" in result.stdout
        assert "--mock" in result.stdout
        assert "--replay" in result.stdout

    def test_replay_help(self):
        result = _run_cli("replay", "--help")
        assert result.returncode == 0
        assert "--tape" in result.stdout
        assert "--no-strict" in result.stdout

    def test_no_command_prints_help(self):
        result = _run_cli()
        assert result.returncode == 0
        assert "usage" in result.stdout.lower()


class TestCLIWorkflows:
    def test_aggregate(self, tmp_path):
        history = _history(tmp_path)
        extra = tmp_path / "new.jsonl"
        extra.write_text(
            json.dumps({"type": "news-published", "date": "2025-01-01", "icon": "Bot", "title": "OPENING MOVE", "description": "v2"}) + "\n",
            encoding="utf-8",
        )
        state_path = tmp_path / "state.json"
        out_history = tmp_path / "closed.jsonl"

        rc = _main("aggregate", "--input-history", str(history), "--new-events", str(extra),
                   "--output-state", str(state_path), "--output-history", str(out_history))

        assert rc == 0
        state = json.loads(state_path.read_text(encoding="utf-8"))
        assert state["eventCount"] == 2
        assert state["latestDate"] == "2025-01-03"
        assert read_events_jsonl(out_history)[0].description == "v2"

    def test_prepare_from_seed_scenario(self, tmp_path):
        out = tmp_path / "prompt.json"
        rc = _main("prepare", "--scenario", "default", "--model", "m", "--max-events", "4", "--output-prompt", str(out))
        assert rc == 0
        request = json.loads(out.read_text(encoding="utf-8"))
        assert request["model"] == "m"
        assert request["contents"].startswith("# TIMELINE (JSONL)")
        assert request["config"]["maxOutputTokens"] == 512
        assert request["config"]["systemInstruction"] == SYSTEM_PROMPT

    def test_parse(self, tmp_path):
        response = tmp_path / "response.json"
        commands = [{"type": "publish-news", "date": "2025-01-02", "icon": "Landmark", "title": "T", "description": "D"}]
        response.write_text(json.dumps({"response": {"text": json.dumps(commands)}}), encoding="utf-8")
        out = tmp_path / "events.jsonl"

        assert _main("parse", "--input-json", str(response), "--output-events", str(out)) == 0
        events = read_events_jsonl(out)
        assert events[0].id == "news-2025-01-02-t"

    def test_parse_error_exits_nonzero(self, tmp_path, capsys):
        response = tmp_path / "response.json"
        response.write_text("   ", encoding="utf-8")
        rc = _main("parse", "--input-json", str(response), "--output-events", str(tmp_path / "e.jsonl"))
        assert rc == 1
        assert "ERROR" in capsys.readouterr().err

    def test_mock_turn(self, tmp_path):
        history = _history(tmp_path)
        moves = write_events_jsonl(
            tmp_path / "moves.jsonl",
            [NewsPublished(date="2025-01-04", icon="Landmark", title="Player agenda", description="D")],
        )
        out_history = tmp_path / "out.jsonl"
        out_state = tmp_path / "state.json"
        out_prompt = tmp_path / "prompt.json"

        rc = _main("turn", "--input-history", str(history), "--new-events", str(moves), "--mock",
                   "--output-history", str(out_history), "--output-state", str(out_state),
                   "--output-prompt", str(out_prompt))

        assert rc == 0
        events = read_events_jsonl(out_history)
        assert events[-1].type == "turn-finished"
        assert events[-1].actor == "game_master"
        assert any(getattr(e, "title", "") == "Mock forecast" for e in events)
        assert json.loads(out_state.read_text(encoding="utf-8"))["latestDate"] == "2025-01-04"
        assert "game_master" in json.loads(out_prompt.read_text(encoding="utf-8"))["contents"]

    def _tape(self, tmp_path: Path, history_path: Path) -> Path:
        request = build_request("m", read_events_jsonl(history_path), SYSTEM_PROMPT)
        commands = [{"type": "publish-news", "date": "2025-01-05", "icon": "Globe", "title": "Taped", "description": "D"}]
        tape = ReplayTape(
            meta=ReplayMeta(model="m", recorded_at="2025-01-01T00:00:00+00:00"),
            request=ReplayRequest.model_validate(request),
            stream=[ReplayChunk(delay_ns=0, text=json.dumps(commands))],
        )
        return save_tape(tmp_path / "tape.json", tape)

    def test_replay(self, tmp_path):
        history = _history(tmp_path)
        tape = self._tape(tmp_path, history)
        out = tmp_path / "events.jsonl"

        rc = _main("replay", "--tape", str(tape), "--input-history", str(history), "--output-events", str(out))

        assert rc == 0
        assert [e.title for e in read_events_jsonl(out)] == ["Taped"]

    def test_replay_mismatch_fails(self, tmp_path, capsys):
        history = _history(tmp_path)
        tape = self._tape(tmp_path, history)

        rc = _main("replay", "--tape", str(tape), "--input-history", str(history), "--system-prompt", "changed")

        assert rc == 1
        assert "mismatch" in capsys.readouterr().err.lower()

    def test_replay_non_strict(self, tmp_path):
        history = _history(tmp_path)
        tape = self._tape(tmp_path, history)
        out = tmp_path / "events.jsonl"

        rc = _main("replay", "--tape", str(tape), "--system-prompt", "changed", "--no-strict", "--output-events", str(out))

        assert rc == 0
        assert len(read_events_jsonl(out)) == 1

    def test_replay_strict_mode_follows_environment(self, tmp_path, monkeypatch):
        history = _history(tmp_path)
        tape = self._tape(tmp_path, history)
        monkeypatch.setenv("TAKEOFF_REPLAY_STRICT", "off")

        rc = _main("replay", "--tape", str(tape), "--system-prompt", "changed")

        assert rc == 0

    def test_turn_rejects_record_with_mock(self, tmp_path, capsys):
        history = _history(tmp_path)
        moves = write_events_jsonl(
            tmp_path / "moves.jsonl",
            [NewsPublished(date="2025-01-04", icon="Landmark", title="Player agenda", description="D")],
        )

        rc = _main("turn", "--input-history", str(history), "--new-events", str(moves), "--mock",
                   "--record", str(tmp_path / "tape.json"), "--output-history", str(tmp_path / "out.jsonl"))

        assert rc == 2
        assert "not allowed with" in capsys.readouterr().err
        assert not (tmp_path / "tape.json").exists()
        assert not (tmp_path / "out.jsonl").exists()
