"""
hookkit - write host lifecycle hooks as small Python scripts.

Usage:
    from hookkit import HookManager, Response

    def guard(event, ctx):
        if event.tool_name == "Write" and event.tool_input.get("file_path", "").endswith(".env"):
            return Response.deny("Refusing to overwrite .env")

    HookManager().on_pre_tool_use(guard).run()
"""
from .config import (
    EXIT_BLOCK,
    EXIT_ERROR,
    EXIT_SUCCESS,
    HookOptions,
)
from .errors import (
    HandlerTimeoutError,
    HookError,
    InvalidEventError,
    QueueLockError,
)
from .events import (
    EventKind,
    HookEvent,
    NotificationEvent,
    PostToolUseEvent,
    PreCompactEvent,
    PreToolUseEvent,
    SessionEndEvent,
    SessionStartEvent,
    StopEvent,
    SubagentStopEvent,
    UserPromptSubmitEvent,
    parse_event,
)
from .sdk import (
    HandlerContext,
    HandlerResult,
    Response,
    block,
    error,
    is_mcp_tool,
    matches_tool,
    parse_mcp_tool,
    success,
)
from .plugins import HookPlugin, PluginOutcome
from .context_store import ContextStore, TransactionContext
from .retry_queue import DrainReport, FailedEventRecord, QueueStatus, RetryQueue
from .manager import DispatchOutcome, HookManager

__version__ = "0.1.0"

__all__ = [
    # Manager
    "HookManager",
    "HookOptions",
    "DispatchOutcome",
    # Results
    "HandlerResult",
    "HandlerContext",
    "Response",
    "success",
    "block",
    "error",
    "EXIT_SUCCESS",
    "EXIT_ERROR",
    "EXIT_BLOCK",
    # Events
    "EventKind",
    "HookEvent",
    "PreToolUseEvent",
    "PostToolUseEvent",
    "NotificationEvent",
    "UserPromptSubmitEvent",
    "StopEvent",
    "SubagentStopEvent",
    "PreCompactEvent",
    "SessionStartEvent",
    "SessionEndEvent",
    "parse_event",
    # Tools
    "matches_tool",
    "is_mcp_tool",
    "parse_mcp_tool",
    # Plugins
    "HookPlugin",
    "PluginOutcome",
    # Stores
    "ContextStore",
    "TransactionContext",
    "RetryQueue",
    "FailedEventRecord",
    "DrainReport",
    "QueueStatus",
    # Errors
    "HookError",
    "InvalidEventError",
    "HandlerTimeoutError",
    "QueueLockError",
]
