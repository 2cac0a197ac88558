"""Tests for JSON-Lines event logs and saved model responses."""
from __future__ import annotations

import json

import pytest

from backend.app.core.errors import SchemaViolation
from backend.app.core.event_io import parse_model_text, read_events_jsonl, write_events_jsonl

COMMANDS = [
    {"type": "publish-news", "date": "2025-01-02", "icon": "Landmark", "title": "T", "description": "D"},
    {"type": "game-over", "date": "2025-01-03", "summary": "Over"},
]


class TestJsonl:
    def test_write_then_read(self, tmp_path, seed_history):
        path = write_events_jsonl(tmp_path / "out" / "history.jsonl", seed_history)
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 3
        assert json.loads(lines[0])["type"] == "news-published"
        assert [e.title for e in read_events_jsonl(path)] == [e.title for e in seed_history]

    def test_read_sorts_and_dedupes(self, tmp_path):
        path = tmp_path / "h.jsonl"
        rows = [
            {"type": "news-published", "date": "2025-01-05", "icon": "Bot", "title": "Later", "description": "D"},
            {"type": "news-published", "date": "2025-01-01", "icon": "Bot", "title": "Early", "description": "D"},
            {"type": "news-published", "date": "2025-01-01", "icon": "Bot", "title": "EARLY", "description": "D2"},
        ]
        path.write_text("\n".join(json.dumps(r) for r in rows) + "\n\n", encoding="utf-8")
        events = read_events_jsonl(path)
        assert [e.title for e in events] == ["EARLY", "Later"]

    def test_invalid_json_reports_line(self, tmp_path):
        path = tmp_path / "h.jsonl"
        path.write_text('{"type":"game-over","date":"2025-01-01","summary":"x"}\n{oops\n', encoding="utf-8")
        with pytest.raises(SchemaViolation) as exc_info:
            read_events_jsonl(path, "input-history")
        assert exc_info.value.position == 2
        assert "input-history" in str(exc_info.value)

    def test_invalid_event_reports_line_and_field(self, tmp_path):
        path = tmp_path / "h.jsonl"
        path.write_text('\n{"type":"game-over","date":"2025-01-01"}\n', encoding="utf-8")
        with pytest.raises(SchemaViolation) as exc_info:
            read_events_jsonl(path, "new-events")
        assert exc_info.value.position == 2
        assert "summary" in exc_info.value.path

    def test_empty_file(self, tmp_path):
        path = write_events_jsonl(tmp_path / "empty.jsonl", [])
        assert path.read_text(encoding="utf-8") == ""
        assert read_events_jsonl(path) == []


class TestParseModelText:
    def test_bare_command_array(self):
        events = parse_model_text(json.dumps(COMMANDS))
        assert [e.type for e in events] == ["news-published", "game-over"]
        assert events[0].id == "news-2025-01-02-t"

    def test_response_wrapper(self):
        raw = json.dumps({"response": {"text": json.dumps(COMMANDS)}})
        assert len(parse_model_text(raw)) == 2

    def test_chunks_are_joined(self):
        text = json.dumps(COMMANDS)
        raw = json.dumps({"chunks": [{"text": text[:20]}, {"text": text[20:]}]})
        assert len(parse_model_text(raw)) == 2

    def test_gemini_candidates(self):
        raw = json.dumps({"candidates": [{"content": {"parts": [{"text": json.dumps(COMMANDS)}]}}]})
        assert len(parse_model_text(raw)) == 2

    def test_jsonl_text(self):
        raw = "\n".join(json.dumps(c) for c in COMMANDS)
        assert [e.type for e in parse_model_text(raw)] == ["news-published", "game-over"]

    def test_fenced_text(self):
        raw = json.dumps({"text": "```json\n" + json.dumps(COMMANDS) + "\n```"})
        assert len(parse_model_text(raw)) == 2

    def test_single_command_object(self):
        assert len(parse_model_text(json.dumps(COMMANDS[1]))) == 1

    def test_empty_rejected(self):
        with pytest.raises(SchemaViolation):
            parse_model_text("   ")

    def test_wrapper_without_text_rejected(self):
        with pytest.raises(SchemaViolation):
            parse_model_text(json.dumps({"response": {"status": "ok"}}))

    def test_garbage_rejected(self):
        with pytest.raises(SchemaViolation):
            parse_model_text("this is not json\nnor is this")

    def test_invalid_command_rejected(self):
        with pytest.raises(SchemaViolation) as exc_info:
            parse_model_text(json.dumps([COMMANDS[0], {"type": "open-story"}]))
        assert exc_info.value.position == 1
