"""Tests for chunk parsing and the async streaming driver."""
from __future__ import annotations

import asyncio
import json

import pytest

from backend.app.core.cancellation import CancelToken
from backend.app.core.errors import SchemaViolation, StreamFailure
from backend.app.core.streaming_pipeline import IncompleteChunk, ingest_stream, parse_chunk, parse_records
from backend.app.models.events import GameOver, NewsPublished

EXAMPLE = '[{"type":"publish-news","date":"2025-01-02","icon":"Landmark","title":"T","description":"D"}]'


def _cmd(title: str, date: str = "2025-01-05", **extra) -> dict:
    return {"type": "publish-news", "date": date, "icon": "Globe", "title": title, "description": "D", **extra}


async def _fragments(*parts, error: Exception | None = None, closed: list | None = None):
    try:
        for part in parts:
            yield part
        if error is not None:
            raise error
    finally:
        if closed is not None:
            closed.append(True)


def _run(agen) -> list:
    async def _drain():
        return [item async for item in agen]
    return asyncio.run(_drain())


class TestParseChunk:
    def test_example_chunk_yields_one_news_event(self):
        result = parse_chunk(EXAMPLE, [])
        assert len(result.events) == 1
        event = result.events[0]
        assert isinstance(event, NewsPublished)
        assert event.id == "news-2025-01-02-t"
        assert result.next_history == [event]

    def test_jsonl_mode(self):
        text = "\n".join(json.dumps(_cmd(t)) for t in ("A", "B", "C"))
        result = parse_chunk(text, [])
        assert [e.title for e in result.events] == ["A", "B", "C"]

    def test_jsonl_mode_tolerates_blank_lines_and_crlf(self):
        text = json.dumps(_cmd("A")) + "\r\n\r\n" + json.dumps(_cmd("B")) + "\r\n"
        assert [e.title for e in parse_chunk(text, []).events] == ["A", "B"]

    def test_single_object_is_a_batch_of_one(self):
        result = parse_chunk(json.dumps({"type": "game-over", "date": "2025-02-01", "summary": "S"}), [])
        assert result.events == [GameOver(date="2025-02-01", summary="S")]

    def test_pretty_printed_array(self):
        text = json.dumps([_cmd("A"), _cmd("B")], indent=2)
        assert [e.title for e in parse_chunk(text, []).events] == ["A", "B"]

    def test_blank_chunk_is_a_no_op(self, seed_history):
        result = parse_chunk("   \n ", seed_history)
        assert result.events == []
        assert result.next_history == seed_history
        assert result.next_history is not seed_history

    def test_appends_without_resorting(self, seed_history):
        result = parse_chunk(json.dumps([_cmd("Earlier", date="2024-12-01")]), seed_history)
        assert result.next_history[:3] == seed_history
        assert result.next_history[-1].title == "Earlier"

    def test_prior_history_untouched(self, seed_history):
        before = list(seed_history)
        parse_chunk(EXAMPLE, seed_history)
        assert seed_history == before

    def test_bad_record_fails_whole_chunk_with_position(self):
        text = json.dumps([_cmd("Good"), _cmd("Bad", icon="NotAnIcon")])
        with pytest.raises(SchemaViolation) as exc_info:
            parse_chunk(text, [])
        assert exc_info.value.position == 1
        assert "icon" in exc_info.value.path

    def test_bad_jsonl_record_position(self):
        text = "\n".join([json.dumps(_cmd("A")), json.dumps(_cmd("B")), json.dumps({"type": "publish-news"})])
        with pytest.raises(SchemaViolation) as exc_info:
            parse_chunk(text, [])
        assert exc_info.value.position == 2

    def test_malformed_jsonl_line_is_not_held_as_incomplete(self):
        text = "\n".join([json.dumps(_cmd("A")), "{not json}", json.dumps(_cmd("C"))])
        with pytest.raises(SchemaViolation) as exc_info:
            parse_chunk(text, [])
        assert not isinstance(exc_info.value, IncompleteChunk)
        assert exc_info.value.position == 1

    def test_malformed_single_line_is_not_held_as_incomplete(self):
        with pytest.raises(SchemaViolation) as exc_info:
            parse_chunk("{not json}\n", [])
        assert not isinstance(exc_info.value, IncompleteChunk)
        assert exc_info.value.position == 0

    def test_unterminated_last_jsonl_line_is_incomplete(self):
        text = json.dumps(_cmd("A")) + "\n" + json.dumps(_cmd("B"))[:20]
        with pytest.raises(IncompleteChunk):
            parse_chunk(text, [])

    def test_terminated_truncated_jsonl_line_is_malformed(self):
        text = json.dumps(_cmd("A")) + "\n" + json.dumps(_cmd("B"))[:20] + "\n" + json.dumps(_cmd("C")) + "\n"
        with pytest.raises(SchemaViolation) as exc_info:
            parse_chunk(text, [])
        assert not isinstance(exc_info.value, IncompleteChunk)
        assert exc_info.value.position == 1

    def test_pretty_printed_array_in_flight_is_incomplete(self):
        text = json.dumps([_cmd("A"), _cmd("B")], indent=2)
        with pytest.raises(IncompleteChunk):
            parse_chunk(text[:40], [])

    def test_event_tags_rejected(self):
        text = json.dumps([{"type": "news-published", "date": "2025-01-02", "icon": "Landmark", "title": "T", "description": "D"}])
        with pytest.raises(SchemaViolation):
            parse_chunk(text, [])

    def test_incomplete_json(self):
        with pytest.raises(IncompleteChunk):
            parse_chunk(EXAMPLE[:30], [])

    def test_scalar_json_rejected(self):
        with pytest.raises(SchemaViolation):
            parse_records("42")


class TestIngestStream:
    def test_folds_chunks_in_order(self, seed_history):
        parts = [json.dumps([_cmd("A")]), json.dumps([_cmd("B"), _cmd("C")])]
        results = _run(ingest_stream(_fragments(*parts), seed_history))
        assert [[e.title for e in r.events] for r in results] == [["A"], ["B", "C"]]
        assert len(results[-1].next_history) == len(seed_history) + 3

    def test_split_record_is_buffered(self):
        text = json.dumps([_cmd("Split")])
        results = _run(ingest_stream(_fragments(text[:17], text[17:40], text[40:]), []))
        assert len(results) == 1
        assert results[0].events[0].title == "Split"

    def test_provider_error_keeps_folded_events(self):
        source = _fragments(json.dumps([_cmd("Kept")]), error=RuntimeError("socket closed"))
        with pytest.raises(StreamFailure) as exc_info:
            _run(ingest_stream(source, []))
        assert [e.title for e in exc_info.value.events] == ["Kept"]
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_unparsed_tail_is_a_failure(self):
        source = _fragments(json.dumps([_cmd("Kept")]), '[{"type":"publish-news"')
        with pytest.raises(StreamFailure) as exc_info:
            _run(ingest_stream(source, []))
        assert len(exc_info.value.events) == 1

    def test_pending_buffer_is_bounded(self):
        source = _fragments("[" * 10, "[" * 10)
        with pytest.raises(StreamFailure):
            _run(ingest_stream(source, [], max_pending_chars=15))

    def test_schema_violation_propagates_unwrapped(self):
        source = _fragments(json.dumps([_cmd("Bad", icon="Nope")]))
        with pytest.raises(SchemaViolation):
            _run(ingest_stream(source, []))

    def test_malformed_record_raises_schema_violation(self):
        parts = [json.dumps([_cmd("A")]) + "\n", "{not json}\n", json.dumps([_cmd("C")]) + "\n", json.dumps([_cmd("D")]) + "\n"]
        seen: list = []

        async def scenario():
            async for result in ingest_stream(_fragments(*parts), []):
                seen.append(result)

        with pytest.raises(SchemaViolation) as exc_info:
            asyncio.run(scenario())
        assert type(exc_info.value) is SchemaViolation
        assert exc_info.value.position == 0
        assert [e.title for r in seen for e in r.events] == ["A"]

    def test_jsonl_record_split_across_fragments(self):
        line_b = json.dumps(_cmd("B"))
        parts = [json.dumps(_cmd("A")) + "\n" + line_b[:20], line_b[20:] + "\n"]
        results = _run(ingest_stream(_fragments(*parts), []))
        assert [e.title for r in results for e in r.events] == ["A", "B"]

    def test_abandoning_iteration_closes_source(self):
        closed: list = []

        async def scenario():
            stream = ingest_stream(_fragments(json.dumps([_cmd("A")]), json.dumps([_cmd("B")]), closed=closed), [])
            first = await stream.__anext__()
            await stream.aclose()
            return first

        first = asyncio.run(scenario())
        assert first.events[0].title == "A"
        assert closed == [True]

    def test_cancel_stops_pulling(self):
        pulled: list[str] = []
        closed: list = []
        token = CancelToken()

        async def source():
            try:
                for title in ("A", "B", "C"):
                    pulled.append(title)
                    yield json.dumps([_cmd(title)])
            finally:
                closed.append(True)

        async def scenario():
            seen = []
            async for result in ingest_stream(source(), [], cancel=token):
                seen.append(result)
                token.cancel()
            return seen

        seen = asyncio.run(scenario())
        assert len(seen) == 1
        assert pulled == ["A"]
        assert closed == [True]

    def test_cancelled_before_start_pulls_nothing(self):
        pulled: list[str] = []
        token = CancelToken()
        token.cancel()

        async def source():
            pulled.append("A")
            yield json.dumps([_cmd("A")])

        assert _run(ingest_stream(source(), [], cancel=token)) == []
        assert pulled == []
