"""
Hook SDK - typed abstractions for handler development.

Provides:
- HandlerResult and the merge rule the dispatcher folds handlers with
- Result builders (success, block, error)
- Structured-output builders (Response.allow, Response.deny, ...)
- HandlerContext with transcript access for handlers
- Tool-name matching helpers
- invoke, which keeps sync handlers off the event loop

Usage:
    from hookkit import HookManager, block, success

    manager = HookManager()

    def guard(event, ctx):
        if event.tool_name == "Bash" and "rm -rf /" in event.tool_input.get("command", ""):
            return block("Dangerous command detected")
        return success()

    manager.on_pre_tool_use(guard).run()
"""
import asyncio
import atexit
import fnmatch
import inspect
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import cached_property, partial
from typing import Any, Awaitable, Callable, Union

from hookkit.config import EXIT_BLOCK, EXIT_ERROR, EXIT_SUCCESS, fast_json_dumps
from hookkit.events import HookEvent
from hookkit.hook_utils.transcript import (
    TranscriptLine,
    get_last_line,
    get_transcript_line,
    read_transcript,
    search_transcript,
)


# =============================================================================
# HandlerResult
# =============================================================================

@dataclass
class HandlerResult:
    """What a handler decided: exit status, optional text, optional structured output."""
    exit_code: int = EXIT_SUCCESS
    stdout: str | None = None
    stderr: str | None = None
    output: dict | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == EXIT_SUCCESS

    @property
    def is_blocking(self) -> bool:
        return self.exit_code == EXIT_BLOCK

    @property
    def stops_chain(self) -> bool:
        """True when no later handler may run: blocking code or ``continue: false``."""
        if self.is_blocking:
            return True
        return isinstance(self.output, dict) and self.output.get("continue") is False

    def merge(self, later: "HandlerResult") -> "HandlerResult":
        """Fold a later handler's result into this running result.

        A non-zero exit code overwrites, zero never erases. Each text or
        output field is replaced only when the later value is non-empty.
        """
        return HandlerResult(
            exit_code=later.exit_code if later.exit_code != EXIT_SUCCESS else self.exit_code,
            stdout=later.stdout or self.stdout,
            stderr=later.stderr or self.stderr,
            output=later.output or self.output,
        )

    def failure_reason(self) -> str:
        return self.stderr or self.stdout or "Handler returned non-zero exit code"

    def render_stdout(self) -> str | None:
        """Structured output as JSON when present, else the plain text."""
        if self.output:
            return fast_json_dumps(self.output).decode()
        return self.stdout or None

    @classmethod
    def coerce(cls, value: Any) -> "HandlerResult":
        """Normalize whatever a handler returned.

        None is a neutral success, a dict is structured output and a str
        is stdout text.
        """
        if value is None:
            return cls()
        if isinstance(value, HandlerResult):
            return value
        if isinstance(value, dict):
            return cls(output=value)
        if isinstance(value, str):
            return cls(stdout=value)
        raise TypeError(f"Handler returned unsupported value of type {type(value).__name__}")


# =============================================================================
# Result Builders
# =============================================================================

def success(stdout: str | None = None, output: dict | None = None) -> HandlerResult:
    """Let the host proceed, optionally with a message or structured output."""
    return HandlerResult(exit_code=EXIT_SUCCESS, stdout=stdout, output=output)


def block(stderr: str, output: dict | None = None) -> HandlerResult:
    """Stop the host's pending action (exit code 2) and stop the handler chain."""
    if not stderr or not stderr.strip():
        raise ValueError("block() requires a non-empty error message")
    return HandlerResult(exit_code=EXIT_BLOCK, stderr=stderr, output=output)


def error(stderr: str, exit_code: int = EXIT_ERROR) -> HandlerResult:
    """Report a non-blocking failure."""
    if not stderr or not stderr.strip():
        raise ValueError("error() requires a non-empty error message")
    return HandlerResult(exit_code=exit_code, stderr=stderr)


class Response:
    """Structured-output builders understood by the host."""

    @staticmethod
    def allow(reason: str = "") -> dict:
        """Allow the tool to proceed (PreToolUse)."""
        return {
            "hookSpecificOutput": {
                "hookEventName": "PreToolUse",
                "permissionDecision": "allow",
                "permissionDecisionReason": reason or "Allowed by hook"
            }
        }

    @staticmethod
    def deny(reason: str) -> dict:
        """Block the tool from proceeding (PreToolUse)."""
        return {
            "hookSpecificOutput": {
                "hookEventName": "PreToolUse",
                "permissionDecision": "deny",
                "permissionDecisionReason": reason
            }
        }

    @staticmethod
    def ask(reason: str) -> dict:
        """Ask the user to confirm the tool call (PreToolUse)."""
        return {
            "hookSpecificOutput": {
                "hookEventName": "PreToolUse",
                "permissionDecision": "ask",
                "permissionDecisionReason": reason
            }
        }

    @staticmethod
    def add_context(text: str, event: str = "PostToolUse") -> dict:
        """Feed extra context to the model (PostToolUse, UserPromptSubmit, SessionStart)."""
        return {
            "hookSpecificOutput": {
                "hookEventName": event,
                "additionalContext": text
            }
        }

    @staticmethod
    def message(text: str) -> dict:
        """Show a system message to the user (any hook)."""
        return {"systemMessage": text}

    @staticmethod
    def stop(reason: str) -> dict:
        """Halt the host entirely; also stops the handler chain."""
        return {"continue": False, "stopReason": reason}


# =============================================================================
# Handler Context
# =============================================================================

class HandlerContext:
    """Transcript access handed to every handler and plugin."""

    def __init__(self, transcript_path: str = ""):
        self.transcript_path = transcript_path

    def get_transcript_line(self, line_number: int) -> TranscriptLine | None:
        return get_transcript_line(self.transcript_path, line_number)

    def get_full_transcript(self) -> list[TranscriptLine]:
        return read_transcript(self.transcript_path)

    def search_transcript(self, predicate: Callable[[TranscriptLine], bool]) -> list[TranscriptLine]:
        return search_transcript(self.transcript_path, predicate)

    def last_transcript_line(self) -> TranscriptLine | None:
        return get_last_line(self.transcript_path)

    @cached_property
    def conversation(self) -> Any:
        """Parsed content of the transcript tail, read at most once."""
        line = self.last_transcript_line()
        return line.content if line else None


HandlerReturn = Union[HandlerResult, dict, str, None]
Handler = Callable[[HookEvent, HandlerContext], Union[HandlerReturn, Awaitable[HandlerReturn]]]


async def resolve(value: Any) -> Any:
    """Await ``value`` if a sync-or-async callable handed back an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


# Worker pool for sync handlers and plugin callbacks, shared by every manager
# in the process. A timed-out worker is abandoned, never joined.
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="hookkit")
atexit.register(_executor.shutdown, wait=False)


def _is_async_callable(func: Any) -> bool:
    return inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(getattr(func, "__call__", None))


async def invoke(func: Callable[..., Any], *args: Any) -> Any:
    """Call a sync-or-async callable without blocking the event loop.

    Coroutine functions run on the loop. Anything else runs on the worker
    pool, so a deadline around the awaiting task still fires while it is
    stuck in blocking code.
    """
    if _is_async_callable(func):
        return await func(*args)
    loop = asyncio.get_running_loop()
    return await resolve(await loop.run_in_executor(_executor, partial(func, *args)))


# =============================================================================
# Tool Matching
# =============================================================================

def matches_tool(tool_name: str, pattern: str) -> bool:
    """Check a tool name against a pattern.

    ``*`` matches anything, ``A|B`` matches either alternative, and each
    alternative may use ``*`` wildcards (``mcp__*``).
    """
    if not isinstance(tool_name, str):
        raise TypeError("tool_name must be a string")
    if not isinstance(pattern, str):
        raise TypeError("pattern must be a string")
    if pattern in ("", "*"):
        return True
    return any(fnmatch.fnmatchcase(tool_name, alt.strip()) for alt in pattern.split("|"))


def is_mcp_tool(tool_name: str) -> bool:
    """MCP tools are named ``mcp__<server>__<tool>``."""
    return isinstance(tool_name, str) and tool_name.startswith("mcp__")


def parse_mcp_tool(tool_name: str) -> dict[str, str] | None:
    """Split an MCP tool name into server and tool, or None if it is not one."""
    if not is_mcp_tool(tool_name):
        return None
    parts = tool_name.split("__")
    if len(parts) < 3:
        return None
    return {"server": parts[1], "tool": "__".join(parts[2:])}
