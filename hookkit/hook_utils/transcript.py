"""
Transcript reader.

The host keeps the conversation as an append-only JSONL file and passes
its path with every event. These helpers give line-indexed access, a full
read, predicate search and the tail line. Parsed transcripts are memoized
per (path, mtime, size) with cachetools, so queued-event replays inside one
invocation do not re-read an unchanged file.
"""
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import msgspec
from cachetools import LRUCache

from hookkit.config import fast_json_loads
from hookkit.hook_utils.logging import log_event


@dataclass(frozen=True)
class TranscriptLine:
    """One transcript line. ``content`` is None when the line is not JSON."""
    line_number: int
    content: Any
    raw: str


_transcript_cache: LRUCache = LRUCache(maxsize=8)
_cache_lock = threading.Lock()


def _cache_key(path: str | Path) -> tuple | None:
    try:
        st = os.stat(path)
    except (OSError, ValueError):
        return None
    return (str(path), st.st_mtime_ns, st.st_size)


def _parse_line(line_number: int, raw: str) -> TranscriptLine:
    try:
        content = fast_json_loads(raw)
    except msgspec.DecodeError:
        content = None
    return TranscriptLine(line_number=line_number, content=content, raw=raw)


def read_transcript(path: str | Path | None) -> list[TranscriptLine]:
    """Read every line of the transcript. Missing files read as empty."""
    if not path:
        return []
    key = _cache_key(path)
    if key is None:
        return []

    with _cache_lock:
        cached = _transcript_cache.get(key)
    if cached is not None:
        return list(cached)

    lines: list[TranscriptLine] = []
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            for line_number, raw in enumerate(f, 1):
                lines.append(_parse_line(line_number, raw.rstrip("\r\n")))
    except OSError as e:
        log_event("transcript", "read_failed", {"path": str(path), "error": str(e)}, "warning")
        return []

    with _cache_lock:
        _transcript_cache[key] = tuple(lines)
    return lines


def get_transcript_line(path: str | Path | None, line_number: int) -> TranscriptLine | None:
    """Return the 1-based ``line_number`` of the transcript, or None."""
    if line_number < 1:
        return None
    lines = read_transcript(path)
    if line_number > len(lines):
        return None
    return lines[line_number - 1]


def search_transcript(
    path: str | Path | None,
    predicate: Callable[[TranscriptLine], bool],
) -> list[TranscriptLine]:
    """Return the transcript lines matching ``predicate``, in file order."""
    return [line for line in read_transcript(path) if predicate(line)]


def get_last_line(path: str | Path | None) -> TranscriptLine | None:
    """Return the most recent non-blank transcript line."""
    for line in reversed(read_transcript(path)):
        if line.raw.strip():
            return line
    return None


def extract_usage(content: Any) -> tuple[dict | None, str | None]:
    """Pull token usage and model name out of a transcript entry.

    Assistant entries carry them under ``message``; some hosts put them
    at the top level.
    """
    if not isinstance(content, dict):
        return None, None
    message = content.get("message")
    if not isinstance(message, dict):
        message = {}
    usage = message.get("usage") or content.get("usage")
    model = message.get("model") or content.get("model")
    return (
        usage if isinstance(usage, dict) else None,
        model if isinstance(model, str) else None,
    )


def clear_cache() -> None:
    """Forget memoized transcripts."""
    with _cache_lock:
        _transcript_cache.clear()
