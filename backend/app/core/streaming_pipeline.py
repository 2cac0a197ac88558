"""Streaming ingestion: provider text fragments -> validated events -> history.

``parse_chunk`` is the pure per-chunk contract. ``ingest_stream`` drives it
from an async fragment source, one fragment at a time, holding text that is
not yet a complete JSON document until the next fragment arrives.

History is never re-sorted here; sort/dedupe is the closing step once the
whole response has been consumed.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Sequence

from backend.app.core.cancellation import CancelToken, is_cancelled
from backend.app.core.errors import ForecastEngineError, SchemaViolation, StreamFailure
from backend.app.core.normalize import normalize_all
from backend.app.models.event_utils import validate_command_array
from backend.app.models.events import EventModel
from shared.config import MAX_PENDING_CHARS

logger = logging.getLogger(__name__)


class IncompleteChunk(SchemaViolation):
    """Chunk text is not (yet) parseable JSON."""


@dataclass(frozen=True)
class ChunkResult:
    events: list[EventModel] = field(default_factory=list)
    next_history: list[EventModel] = field(default_factory=list)


# What may still follow at the point a truncated document stopped decoding:
# nothing, a partial true/false/null literal, or a partial number.
_PARTIAL_TAIL = re.compile(r"(?:t(?:ru?)?|f(?:a(?:ls?)?)?|n(?:ul?)?|[-+.eE\d]*)\Z")


def _truncated(text: str, exc: json.JSONDecodeError) -> bool:
    """True when ``text`` stopped decoding only because it ran out of input."""
    if exc.msg.startswith("Unterminated string"):
        return True
    return _PARTIAL_TAIL.match(text[exc.pos:].strip()) is not None


def _load(text: str, position: int | None = None) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        if _truncated(text, exc):
            raise IncompleteChunk(f"Chunk is not valid JSON yet: {exc.msg}", position=position) from exc
        raise SchemaViolation(f"Record is not valid JSON: {exc.msg}", position=position) from exc


def _as_records(value: Any, position: int | None = None) -> list[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return [value]
    raise SchemaViolation("Expected a JSON array or object of commands", position=position)


def _jsonl_failure(raw_text: str, text: str, lines: list[str], index: int, exc: json.JSONDecodeError) -> list[Any]:
    """Resolve a JSON-Lines line that did not decode.

    The whole text may still be one document (a pretty-printed array), either
    complete or still arriving. Otherwise only an unterminated last line can
    be partial; any other bad line is a malformed record.
    """
    try:
        return _as_records(json.loads(text))
    except json.JSONDecodeError as doc_exc:
        if index == 0 and _truncated(text, doc_exc):
            raise IncompleteChunk("Document is not complete yet", position=index) from doc_exc
    line = lines[index]
    terminated = raw_text.rstrip(" \t\r").endswith("\n")
    if index == len(lines) - 1 and not terminated and _truncated(line, exc):
        raise IncompleteChunk(f"Record is not complete yet: {exc.msg}", position=index) from exc
    raise SchemaViolation(f"Record is not valid JSON: {exc.msg}", position=index) from exc


def parse_records(raw_text: str) -> list[Any]:
    """Split a chunk into raw command records.

    More than one non-empty line is JSON-Lines (one record per line). A
    single line is one JSON array (a lone object counts as a batch of one).
    Text that may still be completed by later fragments raises
    :class:`IncompleteChunk`; text that never can raises
    :class:`SchemaViolation` with the offending line's position.
    """
    text = (raw_text or "").strip()
    if not text:
        return []
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if len(lines) == 1:
        return _as_records(_load(text, position=0), position=0)
    records: list[Any] = []
    for index, line in enumerate(lines):
        try:
            value = json.loads(line)
        except json.JSONDecodeError as exc:
            return _jsonl_failure(raw_text, text, lines, index, exc)
        records.extend(_as_records(value, position=index))
    return records


def parse_chunk(raw_text: str, prior_history: Sequence[EventModel]) -> ChunkResult:
    """Parse, validate and normalize one chunk, appending its events to ``prior_history``.

    A single bad record fails the whole chunk; the raised
    :class:`SchemaViolation` carries the record's position within the chunk.
    """
    records = parse_records(raw_text)
    if not records:
        return ChunkResult(events=[], next_history=list(prior_history))
    commands = validate_command_array(records, context="provider chunk")
    events = normalize_all(commands)
    return ChunkResult(events=events, next_history=[*prior_history, *events])


async def close_stream(fragments: Any) -> None:
    aclose = getattr(fragments, "aclose", None)
    if aclose is not None:
        await aclose()


async def ingest_stream(
    fragments: AsyncIterator[str],
    history: Sequence[EventModel],
    cancel: CancelToken | None = None,
    max_pending_chars: int = MAX_PENDING_CHARS,
) -> AsyncIterator[ChunkResult]:
    """Fold a provider's fragments into history, yielding one result per parsed chunk.

    Fragments are processed strictly in arrival order and the next one is
    not pulled until the current one is folded. Abandoning iteration or
    cancelling ``cancel`` closes the source. Source errors, and text still
    unparsed when the source ends, raise :class:`StreamFailure` carrying the
    events folded so far. Schema violations propagate unchanged.
    """
    current = list(history)
    folded: list[EventModel] = []
    pending = ""
    source = fragments.__aiter__()
    try:
        while True:
            # no pull after cancellation
            if is_cancelled(cancel):
                logger.info("Stream cancelled after %d event(s)", len(folded))
                break
            try:
                fragment = await source.__anext__()
            except StopAsyncIteration:
                break
            pending += fragment
            try:
                result = parse_chunk(pending, current)
            except IncompleteChunk:
                if len(pending) > max_pending_chars:
                    raise StreamFailure(
                        f"Unparsed provider text exceeded {max_pending_chars} characters",
                        events=folded,
                    )
                logger.debug("Holding %d char(s) of incomplete JSON", len(pending))
                continue
            pending = ""
            if not result.events:
                continue
            current = result.next_history
            folded.extend(result.events)
            logger.debug("Chunk folded %d event(s)", len(result.events))
            yield result
    except ForecastEngineError:
        raise
    except Exception as exc:
        logger.error("Provider stream failed after %d event(s): %s", len(folded), exc)
        raise StreamFailure(f"Provider stream failed: {exc}", events=folded) from exc
    finally:
        await close_stream(fragments)

    if pending.strip() and not is_cancelled(cancel):
        logger.error("Stream ended with %d char(s) of unparsed text", len(pending))
        raise StreamFailure("Provider stream ended without a parsable terminal record", events=folded)
