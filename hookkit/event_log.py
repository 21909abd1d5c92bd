"""Append-only JSONL record of every handled event."""
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from hookkit.events import HookEvent
from hookkit.hook_utils.io import append_jsonl
from hookkit.hook_utils.logging import log_event
from hookkit.sdk import HandlerResult


def build_log_entry(event: HookEvent, result: HandlerResult, conversation: Any = None) -> dict:
    return {
        "input": {
            "hook": event.without_context(),
            "conversation": conversation,
            "context": event.context,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        "output": {
            "exit_code": result.exit_code,
            "success": result.success,
            "has_output": result.output is not None,
            "has_stdout": result.stdout is not None,
            "has_stderr": result.stderr is not None,
        },
    }


class EventLog:
    def __init__(self, path: Path):
        self.path = Path(path)

    def append(self, event: HookEvent, result: HandlerResult, conversation: Any = None) -> bool:
        """Write one entry. Never raises; failures are only logged."""
        try:
            return append_jsonl(self.path, build_log_entry(event, result, conversation))
        except Exception as e:
            log_event("event_log", "append_failed", {"path": str(self.path), "error": str(e)}, "warning")
            return False
