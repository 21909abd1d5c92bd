"""
Plugins - observers that run before and after the handler chain.

A plugin can watch every event (for metrics, auditing, notifications)
but cannot change the result. Each call is wrapped so a failing plugin
becomes a PluginOutcome value instead of an exception.
"""
from dataclasses import dataclass
from typing import Any

from hookkit.events import HookEvent
from hookkit.hook_utils.logging import log_event
from hookkit.sdk import HandlerContext, HandlerResult, invoke

BEFORE = "before"
AFTER = "after"


class HookPlugin:
    """Base class for observers with before/after callbacks.

    Subclasses override either method; both may be plain or ``async``.

    Example:
        class Timer(HookPlugin):
            name = "timer"

            def on_before_execute(self, event, ctx, conversation):
                self.started = time.monotonic()

            def on_after_execute(self, event, result, ctx, conversation):
                log_event("timer", "elapsed", {"ms": ...})

        manager.use(Timer())
    """

    name: str = "plugin"

    def on_before_execute(self, event: HookEvent, ctx: HandlerContext, conversation: Any) -> Any:
        """Called before any handler runs.

        Args:
            event: Enriched event
            ctx: Handler context for the event's transcript
            conversation: Parsed transcript tail (or None)
        """
        return None

    def on_after_execute(
        self, event: HookEvent, result: HandlerResult, ctx: HandlerContext, conversation: Any
    ) -> Any:
        """Called with the merged result after the chain finished."""
        return None


@dataclass(frozen=True)
class PluginOutcome:
    """Tagged result of one observer call."""
    plugin: str
    phase: str
    ok: bool
    error: str | None = None


def _plugin_name(plugin: Any) -> str:
    return getattr(plugin, "name", None) or type(plugin).__name__


async def _call_isolated(plugin: Any, phase: str, method: str, *args) -> PluginOutcome:
    name = _plugin_name(plugin)
    callback = getattr(plugin, method, None)
    if callback is None:
        return PluginOutcome(name, phase, ok=True)
    try:
        await invoke(callback, *args)
        return PluginOutcome(name, phase, ok=True)
    except Exception as e:
        log_event("plugins", "plugin_failed", {
            "plugin": name,
            "phase": phase,
            "error": f"{type(e).__name__}: {e}",
        }, "warning")
        return PluginOutcome(name, phase, ok=False, error=str(e))


async def run_before(
    plugins: list, event: HookEvent, ctx: HandlerContext, conversation: Any
) -> list[PluginOutcome]:
    """Run every plugin's before callback in order; failures never propagate."""
    return [
        await _call_isolated(p, BEFORE, "on_before_execute", event, ctx, conversation)
        for p in plugins
    ]


async def run_after(
    plugins: list, event: HookEvent, result: HandlerResult, ctx: HandlerContext, conversation: Any
) -> list[PluginOutcome]:
    """Run every plugin's after callback in order; failures never propagate."""
    return [
        await _call_isolated(p, AFTER, "on_after_execute", event, result, ctx, conversation)
        for p in plugins
    ]
