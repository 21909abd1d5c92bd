"""
Hook utilities package - shared helpers for the dispatch pipeline.

Usage:
    from hookkit.hook_utils import log_event, file_lock, atomic_write_json
    # or
    from hookkit.hook_utils.git import collect_git_metadata
    from hookkit.hook_utils.transcript import read_transcript
"""
from .logging import (
    configure_logging,
    log_event,
)

from .io import (
    file_lock,
    safe_load_json,
    atomic_write_bytes,
    atomic_write_json,
    iter_jsonl,
    write_jsonl,
    append_jsonl,
)

from .git import (
    run_cmd,
    is_git_repo,
    collect_git_metadata,
)

from .transcript import (
    TranscriptLine,
    read_transcript,
    get_transcript_line,
    search_transcript,
    get_last_line,
    extract_usage,
)

__all__ = [
    # Logging
    "configure_logging",
    "log_event",
    # I/O
    "file_lock",
    "safe_load_json",
    "atomic_write_bytes",
    "atomic_write_json",
    "iter_jsonl",
    "write_jsonl",
    "append_jsonl",
    # Git
    "run_cmd",
    "is_git_repo",
    "collect_git_metadata",
    # Transcript
    "TranscriptLine",
    "read_transcript",
    "get_transcript_line",
    "search_transcript",
    "get_last_line",
    "extract_usage",
]
