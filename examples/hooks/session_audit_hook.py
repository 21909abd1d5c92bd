#!/usr/bin/env python3
"""Example all-events hook - audit log with retries and edit summaries.

Register the same script for every event kind. Failed events are queued
and retried on later invocations; each Stop reports the files edited
since the last prompt.

    python3 session_audit_hook.py            # normal hook mode (reads stdin)
    python3 session_audit_hook.py --status   # print retry queue status
    python3 session_audit_hook.py --drain    # retry everything queued now
"""
import asyncio
import sys
import time

from hookkit import HookManager, HookPlugin, Response
from hookkit.hook_utils import log_event


class TimingPlugin(HookPlugin):
    """Logs how long the handler chain took for each event."""

    name = "timing"

    def on_before_execute(self, event, ctx, conversation):
        self.started = time.monotonic()

    def on_after_execute(self, event, result, ctx, conversation):
        elapsed_ms = (time.monotonic() - getattr(self, "started", time.monotonic())) * 1000
        log_event("session_audit", "timing", {
            "event": event.kind_name,
            "exit_code": result.exit_code,
            "ms": round(elapsed_ms, 2),
        })


def warn_backlog(size, records):
    oldest = records[0].timestamp if records else "?"
    print(f"[session_audit] {size} queued event(s), oldest from {oldest}", file=sys.stderr)


def summarize_edits(event, ctx):
    files = (event.context or {}).get("edited_files") or []
    if not files:
        return None
    return Response.message(f"Edited {len(files)} file(s) this turn: {', '.join(sorted(files))}")


def record_usage(event, ctx):
    if event.usage:
        log_event("session_audit", "usage", {"model": event.model, **event.usage})


def build_manager():
    return HookManager(
        client_id="session-audit",
        log_events=True,
        enable_failure_queue=True,
        on_error_queue_not_empty=warn_backlog,
    ).use(TimingPlugin()) \
        .on_stop(summarize_edits) \
        .on_stop(record_usage)


def main():
    manager = build_manager()
    if "--status" in sys.argv:
        status = manager.queue_status()
        print(f"{status.size} queued")
        for record in status.events:
            print(f"  {record.event.get('hook_event_name')} retries={record.retry_count} error={record.error}")
    elif "--drain" in sys.argv:
        report = asyncio.run(manager.drain_queue())
        print(f"processed={report.processed} remaining={report.remaining} dropped={report.dropped}")
    else:
        manager.run()


if __name__ == "__main__":
    main()
