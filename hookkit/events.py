"""
Event model - typed records for each host lifecycle notification.

Every event wraps the raw JSON object the host wrote to stdin. Events are
immutable: accessors hand out copies, and enrichment (``with_context``,
``with_fields``) returns a new event instead of changing this one.

Usage:
    from hookkit.events import parse_event, EventKind

    event = parse_event({"hook_event_name": "PreToolUse", "tool_name": "Bash", ...})
    if event.kind is EventKind.PRE_TOOL_USE and event.tool_name == "Bash":
        ...
"""
import copy
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Mapping

from hookkit.errors import InvalidEventError


class EventKind(str, Enum):
    """Discriminator values found in ``hook_event_name``."""
    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    NOTIFICATION = "Notification"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    STOP = "Stop"
    SUBAGENT_STOP = "SubagentStop"
    PRE_COMPACT = "PreCompact"
    SESSION_START = "SessionStart"
    SESSION_END = "SessionEnd"

    @classmethod
    def parse(cls, name: Any) -> "EventKind | None":
        """Return the kind for ``name``, or None for kinds this version does not know."""
        try:
            return cls(name)
        except ValueError:
            return None


def kind_name(kind: "EventKind | str") -> str:
    """Normalize an EventKind or raw string to the wire name."""
    return kind.value if isinstance(kind, EventKind) else str(kind)


# =============================================================================
# Event Dataclasses
# =============================================================================

@dataclass(frozen=True)
class HookEvent:
    """Base event with the fields every notification carries.

    Supports attribute access via __getattr__ for kind-specific fields the
    typed subclasses do not spell out.
    """
    raw: Mapping[str, Any] = field(default_factory=dict)

    KIND: ClassVar[EventKind | None] = None

    def __post_init__(self):
        object.__setattr__(self, "raw", MappingProxyType(copy.deepcopy(dict(self.raw))))

    @property
    def kind_name(self) -> str:
        return self.raw.get("hook_event_name", "")

    @property
    def kind(self) -> EventKind | None:
        return EventKind.parse(self.kind_name)

    @property
    def session_id(self) -> str:
        return self.raw.get("session_id", "")

    @property
    def transcript_path(self) -> str:
        return self.raw.get("transcript_path", "")

    @property
    def cwd(self) -> str:
        return self.raw.get("cwd", "")

    @property
    def context(self) -> dict | None:
        """Enrichment added by the context store, if any."""
        return self.get("context")

    def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self.raw.get(key, default))

    def __getattr__(self, name: str) -> Any:
        """Fallback for any attribute not explicitly defined."""
        if name.startswith('_') or name == "raw":
            raise AttributeError(name)
        return self.get(name)

    def to_dict(self) -> dict:
        return copy.deepcopy(dict(self.raw))

    def without_context(self) -> dict:
        data = self.to_dict()
        data.pop("context", None)
        return data

    def with_fields(self, **fields: Any) -> "HookEvent":
        """Return a copy with ``fields`` added where the host left them unset.

        Existing non-null fields always win; enrichment never overwrites.
        """
        data = self.to_dict()
        for key, value in fields.items():
            if data.get(key) is None and value is not None:
                data[key] = value
        return type(self)(data)

    def with_context(self, context: dict) -> "HookEvent":
        """Return a copy carrying ``context`` as its enrichment field."""
        data = self.to_dict()
        data["context"] = copy.deepcopy(context)
        return type(self)(data)


@dataclass(frozen=True)
class ToolEvent(HookEvent):
    """Shared accessors for tool notifications."""

    @property
    def tool_name(self) -> str:
        return self.raw.get("tool_name", "")

    @property
    def tool_input(self) -> dict:
        value = self.get("tool_input")
        return value if isinstance(value, dict) else {}

    # Convenience properties
    @property
    def is_bash(self) -> bool:
        return self.tool_name == "Bash"

    @property
    def is_file_edit(self) -> bool:
        return self.tool_name in ("Edit", "Write", "MultiEdit")


@dataclass(frozen=True)
class PreToolUseEvent(ToolEvent):
    """A tool is about to run."""
    KIND: ClassVar[EventKind] = EventKind.PRE_TOOL_USE


@dataclass(frozen=True)
class PostToolUseEvent(ToolEvent):
    """A tool finished running."""
    KIND: ClassVar[EventKind] = EventKind.POST_TOOL_USE

    @property
    def tool_response(self) -> Any:
        return self.get("tool_response")


@dataclass(frozen=True)
class NotificationEvent(HookEvent):
    KIND: ClassVar[EventKind] = EventKind.NOTIFICATION

    @property
    def message(self) -> str:
        return self.raw.get("message", "")


@dataclass(frozen=True)
class UserPromptSubmitEvent(HookEvent):
    """The user submitted a prompt; opens an edit-accumulation window."""
    KIND: ClassVar[EventKind] = EventKind.USER_PROMPT_SUBMIT

    @property
    def prompt(self) -> str:
        return self.raw.get("prompt", "")

    @property
    def prompt_id(self) -> str | None:
        return self.raw.get("prompt_id")


@dataclass(frozen=True)
class StopEvent(HookEvent):
    """The assistant finished its turn."""
    KIND: ClassVar[EventKind] = EventKind.STOP

    @property
    def stop_hook_active(self) -> bool:
        return bool(self.raw.get("stop_hook_active", False))

    @property
    def usage(self) -> dict | None:
        return self.get("usage")

    @property
    def model(self) -> str | None:
        return self.raw.get("model")


@dataclass(frozen=True)
class SubagentStopEvent(StopEvent):
    KIND: ClassVar[EventKind] = EventKind.SUBAGENT_STOP

    @property
    def agent_id(self) -> str | None:
        return self.raw.get("agent_id")


@dataclass(frozen=True)
class PreCompactEvent(HookEvent):
    KIND: ClassVar[EventKind] = EventKind.PRE_COMPACT

    @property
    def trigger(self) -> str:
        return self.raw.get("trigger", "")

    @property
    def custom_instructions(self) -> str:
        return self.raw.get("custom_instructions", "")


@dataclass(frozen=True)
class SessionStartEvent(HookEvent):
    KIND: ClassVar[EventKind] = EventKind.SESSION_START

    @property
    def source(self) -> str:
        return self.raw.get("source", "")


@dataclass(frozen=True)
class SessionEndEvent(HookEvent):
    KIND: ClassVar[EventKind] = EventKind.SESSION_END

    @property
    def reason(self) -> str:
        return self.raw.get("reason", "")


EVENT_TYPES: dict[str, type[HookEvent]] = {
    cls.KIND.value: cls
    for cls in (
        PreToolUseEvent,
        PostToolUseEvent,
        NotificationEvent,
        UserPromptSubmitEvent,
        StopEvent,
        SubagentStopEvent,
        PreCompactEvent,
        SessionStartEvent,
        SessionEndEvent,
    )
}


def parse_event(data: Any) -> HookEvent:
    """Build the typed event for a decoded stdin payload.

    Unknown kinds still parse (as a plain HookEvent) so newer hosts are
    routed by name instead of rejected.

    Raises:
        InvalidEventError: payload is not an object or has no kind.
    """
    if isinstance(data, HookEvent):
        return data
    if not isinstance(data, dict):
        raise InvalidEventError(f"Expected a JSON object, got {type(data).__name__}")
    name = data.get("hook_event_name")
    if not isinstance(name, str) or not name:
        raise InvalidEventError("Event has no hook_event_name")
    return EVENT_TYPES.get(name, HookEvent)(data)
