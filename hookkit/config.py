"""
Centralized configuration for hookkit.

All configurable constants in one place for easy tuning.
Modules import from here for consistency.

Categories:
- Exit codes: values the host interprets
- Paths: per-client directory layout and file names
- Timeouts: handler, git and lock budgets
- Defaults: retry queue and client defaults
- HookOptions: per-manager options (with env overrides)
- JSON: msgspec-backed encode/decode helpers
"""
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable

import msgspec

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_BLOCK = 2  # Host must not proceed with the pending action

# =============================================================================
# Paths
# =============================================================================

ENV_PROJECT_DIR = "CLAUDE_PROJECT_DIR"


class Paths:
    """Directory and file names under the per-client directory."""
    CLAUDE_DIR = ".claude"
    HOOKS_DIR = "hooks"
    LOGS_DIR = "logs"

    CONTEXT_FILE = "context.json"
    REPO_INSTANCE_FILE = "repo-instance.json"
    ERROR_QUEUE_FILE = "error-queue.jsonl"
    DEAD_LETTER_FILE = "dead-letter.jsonl"
    EVENTS_LOG_FILE = "events.jsonl"
    DEBUG_LOG_FILE = "hookkit-debug.jsonl"


class Prefixes:
    """Generated identifier prefixes."""
    TRANSACTION = "tx_"
    PROMPT = "prompt_"
    REPO_INSTANCE = "repo_"


# =============================================================================
# Timeouts (seconds unless noted)
# =============================================================================

class Timeouts:
    """Timeout settings."""
    HANDLER_TIMEOUT_MS = 30000  # Whole handler chain, 0 disables
    GIT_COMMAND = 5
    FILE_LOCK = 10.0


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_CLIENT_ID = "default"
DEFAULT_MAX_RETRIES = 3
DEFAULT_MAX_QUEUE_DRAIN_PER_EVENT = 10

# Tools whose successful completion mutates files on disk
FILE_MUTATING_TOOLS = frozenset({"Edit", "Write", "MultiEdit"})

TRUTHY = frozenset({"1", "true", "yes", "on"})


def _env_flag(name: str) -> bool | None:
    value = os.environ.get(name)
    if value is None:
        return None
    return value.strip().lower() in TRUTHY


def _env_int(name: str) -> int | None:
    value = os.environ.get(name)
    if value is None:
        return None
    try:
        return int(float(value))
    except (ValueError, TypeError):
        return None  # Invalid env values fall back to the default


# =============================================================================
# HookOptions
# =============================================================================

@dataclass
class HookOptions:
    """Options for a HookManager.

    Every field has a default, so ``HookOptions()`` is a valid
    non-blocking configuration with context tracking on and the retry
    queue off.
    """
    client_id: str = DEFAULT_CLIENT_ID
    log_dir: Path | None = None
    debug: bool = False
    log_events: bool = False
    enable_failure_queue: bool = False
    on_error_queue_not_empty: Callable[..., Any] | None = None
    block_on_failure: bool = False
    max_retries: int = DEFAULT_MAX_RETRIES
    enable_context_tracking: bool = True
    track_edits: bool = True
    max_queue_drain_per_event: int = DEFAULT_MAX_QUEUE_DRAIN_PER_EVENT
    auto_drain_queue: bool = True
    handler_timeout_ms: int = Timeouts.HANDLER_TIMEOUT_MS
    dead_letter: bool = False

    @property
    def context_tracking(self) -> bool:
        """Edit tracking lives in the context store, so it forces tracking on."""
        return self.track_edits or self.enable_context_tracking

    def resolve_log_dir(self) -> Path:
        """Per-client directory holding context, queue and logs."""
        if self.log_dir is not None:
            return Path(self.log_dir)
        base = os.environ.get(ENV_PROJECT_DIR) or os.getcwd()
        return Path(base) / Paths.CLAUDE_DIR / Paths.HOOKS_DIR / self.client_id

    def with_overrides(self, **overrides) -> "HookOptions":
        return replace(self, **overrides)

    @classmethod
    def from_env(cls, **overrides) -> "HookOptions":
        """Build options from environment variables, then apply overrides.

        Recognized variables:
            HOOK_CLIENT_ID, HOOK_DEBUG, HOOK_LOG_EVENTS, HOOK_FAILURE_QUEUE,
            HOOK_BLOCK_ON_FAILURE, HANDLER_TIMEOUT (milliseconds)
        """
        values: dict[str, Any] = {}
        if client_id := os.environ.get("HOOK_CLIENT_ID"):
            values["client_id"] = client_id
        for field_name, env_name in (
            ("debug", "HOOK_DEBUG"),
            ("log_events", "HOOK_LOG_EVENTS"),
            ("enable_failure_queue", "HOOK_FAILURE_QUEUE"),
            ("block_on_failure", "HOOK_BLOCK_ON_FAILURE"),
        ):
            flag = _env_flag(env_name)
            if flag is not None:
                values[field_name] = flag
        timeout = _env_int("HANDLER_TIMEOUT")
        if timeout is not None and timeout >= 0:
            values["handler_timeout_ms"] = timeout

        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown HookOptions fields: {', '.join(sorted(unknown))}")
        values.update(overrides)
        return cls(**values)


# =============================================================================
# JSON (msgspec)
# =============================================================================

_encoder = msgspec.json.Encoder()


def fast_json_loads(data: str | bytes) -> Any:
    """Decode JSON with msgspec. Raises msgspec.DecodeError on bad input."""
    return msgspec.json.decode(data)


def fast_json_dumps(obj: Any) -> bytes:
    """Encode to compact JSON bytes with msgspec."""
    return _encoder.encode(obj)


def pretty_json_dumps(obj: Any, indent: int = 2) -> bytes:
    """Encode to indented JSON bytes (for human-read side files)."""
    return msgspec.json.format(_encoder.encode(obj), indent=indent)
