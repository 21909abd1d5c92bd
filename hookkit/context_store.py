"""
Context store - correlation state persisted across hook invocations.

Each invocation is a fresh process, so everything that must span two
events lives in ``context.json`` under the client directory:

- transaction_id: created on SessionStart, cleared on SessionEnd
- conversation_id / prompt_id / project_dir
- edit window: opened by UserPromptSubmit, filled by PostToolUse on
  Edit/Write/MultiEdit, reported and closed by Stop

Git metadata is recomputed on every read. The repository-instance id is
generated the first time a working copy is seen and kept in
``repo-instance.json`` so clearing the session never regenerates it.

Every read-modify-write runs under a file lock and writes atomically.
"""
import os
import time
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable

from filelock import Timeout as LockTimeout

from hookkit.config import ENV_PROJECT_DIR, FILE_MUTATING_TOOLS, Paths, Prefixes, Timeouts
from hookkit.events import EventKind, HookEvent
from hookkit.hook_utils.git import collect_git_metadata
from hookkit.hook_utils.io import atomic_write_bytes, atomic_write_json, file_lock, safe_load_json
from hookkit.hook_utils.logging import log_event

GitCollector = Callable[[str | None], dict[str, Any] | None]

# Keys copied from the collector into the enriched context
GIT_CONTEXT_KEYS = ("branch", "commit", "dirty", "user", "email", "repo")


def _now_ms() -> int:
    return int(time.time() * 1000)


def new_transaction_id() -> str:
    return f"{Prefixes.TRANSACTION}{_now_ms()}_{uuid.uuid4().hex[:9]}"


def new_repo_instance_id() -> str:
    return f"{Prefixes.REPO_INSTANCE}{_now_ms()}_{uuid.uuid4().hex[:13]}"


@dataclass
class TransactionContext:
    """Persisted session state. Inactive (no session) when transaction_id is None."""
    transaction_id: str | None = None
    conversation_id: str | None = None
    prompt_id: str | None = None
    project_dir: str | None = None
    tracking_edits: bool = False
    edited_files: list[str] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return bool(self.transaction_id)

    def add_edited(self, paths: list[str]) -> bool:
        """Add paths with set semantics. Returns True if anything was new."""
        added = False
        for path in paths:
            if path not in self.edited_files:
                self.edited_files.append(path)
                added = True
        return added

    def close_window(self) -> None:
        self.tracking_edits = False
        self.edited_files = []

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "TransactionContext":
        if not isinstance(data, dict):
            return cls()
        files = data.get("edited_files")
        return cls(
            transaction_id=data.get("transaction_id") or None,
            conversation_id=data.get("conversation_id"),
            prompt_id=data.get("prompt_id"),
            project_dir=data.get("project_dir"),
            tracking_edits=bool(data.get("tracking_edits", False)),
            edited_files=[f for f in files if isinstance(f, str)] if isinstance(files, list) else [],
        )


def edited_paths(event: HookEvent) -> list[str]:
    """File paths a PostToolUse event for a file-mutating tool touched."""
    if getattr(event, "tool_name", None) not in FILE_MUTATING_TOOLS:
        return []
    tool_input = event.tool_input
    paths = []
    if isinstance(tool_input.get("file_path"), str) and tool_input["file_path"]:
        paths.append(tool_input["file_path"])
    edits = tool_input.get("edits")
    if isinstance(edits, list):
        for edit in edits:
            if isinstance(edit, dict) and isinstance(edit.get("file_path"), str) and edit["file_path"]:
                paths.append(edit["file_path"])
    return paths


class ContextStore:
    """Builds the ``context`` field for each event and persists transitions."""

    def __init__(
        self,
        client_dir: Path,
        track_edits: bool = True,
        git_collector: GitCollector = collect_git_metadata,
        project_dir: str | None = None,
        lock_timeout: float = Timeouts.FILE_LOCK,
    ):
        self.client_dir = Path(client_dir)
        self.context_path = self.client_dir / Paths.CONTEXT_FILE
        self.repo_instance_path = self.client_dir / Paths.REPO_INSTANCE_FILE
        self.track_edits = track_edits
        self.git_collector = git_collector
        self._project_dir = project_dir
        self.lock_timeout = lock_timeout

    @property
    def project_dir(self) -> str | None:
        return self._project_dir or os.environ.get(ENV_PROJECT_DIR) or None

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def load(self) -> TransactionContext:
        return TransactionContext.from_dict(safe_load_json(self.context_path, {}))

    def save(self, ctx: TransactionContext) -> bool:
        return atomic_write_json(self.context_path, ctx.to_dict(), pretty=True)

    def clear(self) -> bool:
        """Reset to "no active session" without removing the file."""
        return atomic_write_bytes(self.context_path, b"")

    # -------------------------------------------------------------------------
    # Enrichment
    # -------------------------------------------------------------------------

    def enrich(self, event: HookEvent) -> HookEvent:
        """Return a copy of ``event`` carrying a ``context`` field."""
        return event.with_context(self.get_context(event))

    def get_context(self, event: HookEvent) -> dict:
        try:
            with file_lock(self.context_path, self.lock_timeout):
                ctx, extra = self._transition(event, persist=True)
        except LockTimeout:
            log_event("context_store", "lock_timeout", {
                "path": str(self.context_path),
                "event": event.kind_name,
            }, "warning")
            ctx, extra = self._transition(event, persist=False)
        return self._render(event, ctx, extra)

    def _transition(self, event: HookEvent, persist: bool) -> tuple[TransactionContext, dict]:
        """Apply the lifecycle state machine for ``event``.

        Returns the context to report and kind-specific extra fields.
        """
        kind = event.kind
        current = self.load()
        extra: dict[str, Any] = {}
        changed = False

        if kind is EventKind.SESSION_START:
            current = TransactionContext(
                transaction_id=new_transaction_id(),
                conversation_id=event.session_id or None,
                project_dir=self.project_dir,
            )
            changed = True

        elif kind is EventKind.SESSION_END:
            if persist:
                self.clear()
            log_event("context_store", "session_cleared", {"transaction_id": current.transaction_id})
            return current, extra

        elif kind is EventKind.USER_PROMPT_SUBMIT:
            if current.active:
                current.prompt_id = event.get("prompt_id") or f"{Prefixes.PROMPT}{_now_ms()}"
                changed = True
            if self.track_edits:
                current.tracking_edits = True
                current.edited_files = []
                changed = True

        elif kind is EventKind.POST_TOOL_USE:
            if self.track_edits and current.tracking_edits:
                changed = current.add_edited(edited_paths(event))

        elif kind is EventKind.STOP:
            if self.track_edits:
                extra["edited_files"] = list(current.edited_files) if current.tracking_edits else []
                if current.tracking_edits or current.edited_files:
                    current.close_window()
                    changed = True

        elif kind is EventKind.SUBAGENT_STOP:
            extra["parent_session_id"] = event.session_id or None
            extra["agent_id"] = event.get("agent_id")

        if changed and persist:
            self.save(current)
        return current, extra

    def _render(self, event: HookEvent, ctx: TransactionContext, extra: dict) -> dict:
        project_dir = ctx.project_dir or self.project_dir
        if ctx.active:
            context = {
                "transaction_id": ctx.transaction_id,
                "conversation_id": ctx.conversation_id,
                "prompt_id": ctx.prompt_id,
                "project_dir": project_dir,
            }
        else:
            # No session yet: ad-hoc context, never persisted
            context = {
                "transaction_id": new_transaction_id(),
                "conversation_id": event.session_id or None,
                "project_dir": project_dir,
            }
        git = self.git_metadata(project_dir or event.cwd or None)
        if git:
            context["git"] = git
        context.update(extra)
        return {k: v for k, v in context.items() if v is not None}

    # -------------------------------------------------------------------------
    # Git
    # -------------------------------------------------------------------------

    def git_metadata(self, cwd: str | None) -> dict | None:
        """Fresh git metadata plus the cached repository-instance id."""
        try:
            raw = self.git_collector(cwd)
        except Exception as e:
            log_event("context_store", "git_failed", {"error": str(e)}, "warning")
            return None
        if not raw:
            return None
        git = {k: raw[k] for k in GIT_CONTEXT_KEYS if k in raw}
        git["repo_instance_id"] = self.repo_instance_id(raw.get("toplevel") or cwd or "")
        return git

    def repo_instance_id(self, key: str) -> str:
        """Id for the working copy at ``key``, generated on first sight."""
        try:
            with file_lock(self.repo_instance_path, self.lock_timeout):
                ids = safe_load_json(self.repo_instance_path, {})
                if not isinstance(ids, dict):
                    ids = {}
                existing = ids.get(key)
                if isinstance(existing, str) and existing:
                    return existing
                ids[key] = new_repo_instance_id()
                atomic_write_json(self.repo_instance_path, ids, pretty=True)
                return ids[key]
        except LockTimeout:
            log_event("context_store", "lock_timeout", {"path": str(self.repo_instance_path)}, "warning")
            ids = safe_load_json(self.repo_instance_path, {})
            existing = ids.get(key) if isinstance(ids, dict) else None
            return existing or new_repo_instance_id()
