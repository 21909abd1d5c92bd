"""
HookManager - the per-invocation dispatch pipeline.

One hook process handles one event:

    stdin -> parse -> [drain retry queue] -> enrich (context store)
          -> before plugins -> handlers (merged, under timeout)
          -> after plugins -> event log -> stdout/stderr + exit code

Usage:
    from hookkit import HookManager, Response, block

    def guard(event, ctx):
        if "rm -rf /" in event.tool_input.get("command", ""):
            return block("Refusing to delete the filesystem root")

    def audit(event, ctx):
        return Response.message(f"{event.tool_name} finished")

    HookManager(block_on_failure=True) \\
        .on_pre_tool_use(guard) \\
        .on_post_tool_use(audit) \\
        .run()

Failures never stall the host unless block_on_failure is set: a handler
exception or timeout exits 0 (and is queued when the retry queue is on).
"""
import asyncio
import os
import sys
from dataclasses import dataclass
from typing import Any

import msgspec

from hookkit.config import EXIT_ERROR, EXIT_SUCCESS, HookOptions, Paths, fast_json_loads
from hookkit.context_store import ContextStore
from hookkit.errors import HandlerTimeoutError, InvalidEventError, QueueLockError
from hookkit.event_log import EventLog
from hookkit.events import EventKind, HookEvent, parse_event
from hookkit.hook_utils.logging import configure_logging, log_event
from hookkit.hook_utils.transcript import extract_usage
from hookkit.plugins import run_after, run_before
from hookkit.registry import HandlerRegistry
from hookkit.retry_queue import DrainReport, QueueStatus, RetryQueue
from hookkit.sdk import Handler, HandlerContext, HandlerResult, invoke

QUEUED_BEHIND_BACKLOG = "Queued due to existing error queue"

_TURN_FINISHED = (EventKind.STOP, EventKind.SUBAGENT_STOP)


@dataclass(frozen=True)
class DispatchOutcome:
    """What the process writes and how it exits."""
    exit_code: int = EXIT_SUCCESS
    stdout: str | None = None
    stderr: str | None = None


def _consume_result(task: asyncio.Future) -> None:
    # Abandoned chains may still fail after cancellation; retrieve the
    # exception so asyncio does not report it as never retrieved
    if not task.cancelled():
        task.exception()


class HookManager:
    """Registry of handlers plus the stores one invocation needs."""

    def __init__(self, options: HookOptions | None = None, **overrides):
        options = options or HookOptions.from_env()
        self.options = options.with_overrides(**overrides) if overrides else options
        self.log_dir = self.options.resolve_log_dir()
        configure_logging(self.options.debug, self.log_dir)

        self.registry = HandlerRegistry()
        # Set once a chain is abandoned at the deadline; its worker may still run
        self.abandoned_work = False

        self.context_store: ContextStore | None = None
        if self.options.context_tracking:
            self.context_store = ContextStore(self.log_dir, track_edits=self.options.track_edits)

        self.retry_queue: RetryQueue | None = None
        if self.options.enable_failure_queue:
            self.retry_queue = RetryQueue(
                self.log_dir / Paths.ERROR_QUEUE_FILE,
                max_retries=self.options.max_retries,
                on_not_empty=self.options.on_error_queue_not_empty,
                dead_letter_path=self.log_dir / Paths.DEAD_LETTER_FILE if self.options.dead_letter else None,
            )

        self.event_log: EventLog | None = None
        if self.options.log_events:
            self.event_log = EventLog(self.log_dir / Paths.LOGS_DIR / Paths.EVENTS_LOG_FILE)

    # =========================================================================
    # Registration
    # =========================================================================

    def on(self, kind: EventKind | str, handler: Handler | None = None):
        """Register ``handler`` for ``kind`` and return the manager.

        Without a handler, returns a decorator that registers the function
        and hands it back unchanged.
        """
        if handler is None:
            def decorator(func: Handler) -> Handler:
                self.registry.register(kind, func)
                return func
            return decorator
        self.registry.register(kind, handler)
        return self

    def on_pre_tool_use(self, handler: Handler) -> "HookManager":
        return self.on(EventKind.PRE_TOOL_USE, handler)

    def on_post_tool_use(self, handler: Handler) -> "HookManager":
        return self.on(EventKind.POST_TOOL_USE, handler)

    def on_notification(self, handler: Handler) -> "HookManager":
        return self.on(EventKind.NOTIFICATION, handler)

    def on_user_prompt_submit(self, handler: Handler) -> "HookManager":
        return self.on(EventKind.USER_PROMPT_SUBMIT, handler)

    def on_stop(self, handler: Handler) -> "HookManager":
        return self.on(EventKind.STOP, handler)

    def on_subagent_stop(self, handler: Handler) -> "HookManager":
        return self.on(EventKind.SUBAGENT_STOP, handler)

    def on_pre_compact(self, handler: Handler) -> "HookManager":
        return self.on(EventKind.PRE_COMPACT, handler)

    def on_session_start(self, handler: Handler) -> "HookManager":
        return self.on(EventKind.SESSION_START, handler)

    def on_session_end(self, handler: Handler) -> "HookManager":
        return self.on(EventKind.SESSION_END, handler)

    def use(self, plugin: Any) -> "HookManager":
        """Add a plugin (see HookPlugin); plugins run in the order added."""
        self.registry.add_plugin(plugin)
        return self

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute(self, event: HookEvent | dict) -> HandlerResult:
        """Run one event through enrichment, plugins and handlers.

        Handler exceptions propagate.

        Raises:
            HandlerTimeoutError: chain exceeded handler_timeout_ms
        """
        event = parse_event(event)
        timeout_ms = self.options.handler_timeout_ms
        if not timeout_ms or timeout_ms <= 0:
            return await self._execute_handlers(event)

        task = asyncio.ensure_future(self._execute_handlers(event))
        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        if task in done:
            return task.result()

        # Fire-and-forget: the abandoned chain is not awaited
        task.cancel()
        task.add_done_callback(_consume_result)
        self.abandoned_work = True
        log_event("manager", "handler_timeout", {
            "event": event.kind_name,
            "timeout_ms": timeout_ms,
        }, "warning")
        raise HandlerTimeoutError(timeout_ms)

    async def _execute_handlers(self, event: HookEvent) -> HandlerResult:
        # Enrich even without handlers so lifecycle state keeps moving
        if self.context_store is not None:
            event = self.context_store.enrich(event)

        handlers = self.registry.handlers_for(event.kind_name)
        if not handlers:
            return HandlerResult()

        ctx = HandlerContext(event.transcript_path)
        conversation = ctx.conversation

        if event.kind in _TURN_FINISHED:
            usage, model = extract_usage(conversation)
            event = event.with_fields(usage=usage, model=model)

        plugins = self.registry.plugins
        await run_before(plugins, event, ctx, conversation)

        merged = HandlerResult()
        for index, handler in enumerate(handlers):
            result = HandlerResult.coerce(await invoke(handler, event, ctx))
            merged = merged.merge(result)
            if result.stops_chain:
                log_event("manager", "chain_stopped", {
                    "event": event.kind_name,
                    "handler": getattr(handler, "__name__", repr(handler)),
                    "skipped": len(handlers) - index - 1,
                })
                break

        await run_after(plugins, event, merged, ctx, conversation)

        if self.event_log is not None:
            self.event_log.append(event, merged, conversation)
        return merged

    # =========================================================================
    # Process entry points
    # =========================================================================

    async def process(self, raw: str | bytes) -> DispatchOutcome:
        """Full pipeline for one stdin payload. Never raises for bad input or handler failure."""
        try:
            event = parse_event(fast_json_loads(raw))
        except (msgspec.DecodeError, UnicodeDecodeError, InvalidEventError) as e:
            log_event("manager", "invalid_input", {"error": str(e)}, "warning")
            return DispatchOutcome()

        log_event("manager", "event_received", {"event": event.kind_name})

        try:
            if self.retry_queue is not None and self.options.auto_drain_queue:
                if await self._drain_backlog(event):
                    return DispatchOutcome()
            result = await self.execute(event)
        except Exception as e:
            return self._handle_failure(event, e)

        if not result.success and self.retry_queue is not None:
            self._safe_enqueue(event, result.failure_reason())

        return DispatchOutcome(
            exit_code=result.exit_code if self.options.block_on_failure else EXIT_SUCCESS,
            stdout=result.render_stdout(),
            stderr=result.stderr or None,
        )

    async def _drain_backlog(self, event: HookEvent) -> bool:
        """Drain older failures first. True when ``event`` was queued behind them."""
        report = await self.retry_queue.drain(self.execute, limit=self.options.max_queue_drain_per_event)
        if report.remaining <= 0:
            return False
        log_event("manager", "queued_behind_backlog", {
            "event": event.kind_name,
            "remaining": report.remaining,
        })
        self.retry_queue.enqueue(event, QUEUED_BEHIND_BACKLOG)
        return True

    def _handle_failure(self, event: HookEvent, exc: Exception) -> DispatchOutcome:
        reason = str(exc) or type(exc).__name__
        log_event("manager", "dispatch_failed", {
            "event": event.kind_name,
            "type": type(exc).__name__,
            "error": reason,
            "timeout": isinstance(exc, HandlerTimeoutError),
        }, "error")
        if self.retry_queue is not None:
            self._safe_enqueue(event, reason)
        if self.options.block_on_failure:
            return DispatchOutcome(exit_code=EXIT_ERROR, stderr=reason)
        return DispatchOutcome()

    def _safe_enqueue(self, event: HookEvent, reason: str) -> None:
        try:
            self.retry_queue.enqueue(event, reason)
        except QueueLockError as e:
            log_event("manager", "enqueue_failed", {"event": event.kind_name, "error": str(e)}, "error")

    def run(self, stdin: Any = None) -> None:
        """Read one event from stdin, dispatch it, write output and exit.

        Input is read as bytes so undecodable text reaches the JSON decoder
        and is treated as malformed input.
        """
        stream = stdin if stdin is not None else sys.stdin
        try:
            raw = getattr(stream, "buffer", stream).read()
            outcome = asyncio.run(self.process(raw))
        except Exception as e:
            log_event("manager", "error", {"type": type(e).__name__, "msg": str(e)}, "error")
            outcome = DispatchOutcome(exit_code=EXIT_ERROR if self.options.block_on_failure else EXIT_SUCCESS)

        if outcome.stdout:
            print(outcome.stdout)
        if outcome.stderr:
            print(outcome.stderr, file=sys.stderr)
        if self.abandoned_work:
            # Interpreter shutdown joins worker threads; a stuck sync handler
            # would hold the host past the deadline
            sys.stdout.flush()
            sys.stderr.flush()
            os._exit(outcome.exit_code)
        sys.exit(outcome.exit_code)

    # =========================================================================
    # Queue operations
    # =========================================================================

    async def drain_queue(self) -> DrainReport:
        """Drain the whole retry queue now (outside the per-event drain)."""
        if self.retry_queue is None:
            return DrainReport()
        return await self.retry_queue.drain(self.execute)

    def queue_status(self) -> QueueStatus:
        if self.retry_queue is None:
            return QueueStatus()
        return self.retry_queue.status()

