#!/usr/bin/env python3
"""Example PreToolUse hook - veto dangerous commands and protected paths.

Runs in blocking mode so a denial actually stops the tool.

Usage in settings.json:
{
  "hooks": {
    "PreToolUse": [{
      "matcher": "Bash|Write|Edit|MultiEdit",
      "hooks": [{"type": "command", "command": "python3 ~/.claude/hooks/guard_hook.py"}]
    }]
  }
}
"""
import re

from hookkit import HookManager, Response, block, matches_tool
from hookkit.hook_utils import log_event

DANGEROUS_COMMANDS = [
    re.compile(r"rm\s+-rf\s+/(\s|$)"),
    re.compile(r"\bmkfs\b"),
    re.compile(r"\bdd\s+if="),
    re.compile(r":\(\)\{\s*:\|:&\s*\};:"),
]

PROTECTED_PATHS = [".env", "secrets/", "credentials"]


def check_bash(event, ctx):
    if event.tool_name != "Bash":
        return None
    command = event.tool_input.get("command")
    if not isinstance(command, str):
        return None
    for pattern in DANGEROUS_COMMANDS:
        if pattern.search(command):
            log_event("guard_hook", "blocked_command", {"command": command})
            return block(f"Blocked dangerous command: {command}")
    if "sudo" in command:
        return Response.ask("Command requires elevated privileges")
    return None


def check_paths(event, ctx):
    if not matches_tool(event.tool_name, "Write|Edit|MultiEdit"):
        return None
    tool_input = event.tool_input
    edits = tool_input.get("edits")
    paths = [tool_input.get("file_path")]
    if isinstance(edits, list):
        paths += [e.get("file_path") for e in edits if isinstance(e, dict)]
    for path in paths:
        if not isinstance(path, str):
            continue
        for pattern in PROTECTED_PATHS:
            if pattern in path:
                log_event("guard_hook", "blocked_path", {"path": path})
                return block(f"Protected path: {pattern}", output=Response.deny(f"Protected path: {pattern}"))
    return None


if __name__ == "__main__":
    HookManager(client_id="guard", block_on_failure=True) \
        .on_pre_tool_use(check_bash) \
        .on_pre_tool_use(check_paths) \
        .run()
