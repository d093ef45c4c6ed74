"""Classify stream-json lines into typed events.

Every non-blank line becomes exactly one event. Lines that are not JSON,
that carry an unknown ``type``, or whose payload has the wrong shape become a
:class:`ParseError` instead of raising, so a noisy upstream process can never
stop a session.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union


class ParseErrorKind(enum.Enum):
    MALFORMED = "malformed"          # not JSON / not an object
    UNKNOWN_TYPE = "unknown_type"    # envelope ok, discriminant unknown
    INVALID = "invalid"              # known type, payload has the wrong shape


# ── Payload decoding helpers ────────────────────────────────────────────────

def _obj(value, name: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be an object, got {type(value).__name__}")
    return value


def _list(value, name: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{name} must be an array, got {type(value).__name__}")
    return value


def _str(d: dict, key: str, default: str = "") -> str:
    value = d.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _int(d: dict, key: str, default: int = 0) -> int:
    value = d.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number, got {type(value).__name__}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{key} must be an integer, got {value}")
    return int(value)


def _float(d: dict, key: str, default: float = 0.0) -> float:
    value = d.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number, got {type(value).__name__}")
    return float(value)


def _bool(d: dict, key: str) -> bool:
    value = d.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean, got {type(value).__name__}")
    return value


def _strs(d: dict, key: str) -> tuple[str, ...]:
    items = _list(d.get(key), key)
    # Newer agents send tools/agents as objects; keep their names.
    out = []
    for item in items:
        if isinstance(item, str):
            out.append(item)
        elif isinstance(item, dict) and isinstance(item.get("name"), str):
            out.append(item["name"])
        else:
            raise ValueError(f"{key} must contain strings")
    return tuple(out)


def _parent_id(d: dict, key: str = "parent_tool_use_id") -> Optional[str]:
    value = _str(d, key)
    return value or None


# ── Content blocks ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ContentBlock:
    """A text or tool_use unit inside an assistant message."""

    type: str
    id: str = ""
    name: str = ""
    text: str = ""
    input: Any = None

    @classmethod
    def from_dict(cls, d) -> "ContentBlock":
        d = _obj(d, "content block")
        return cls(
            type=_str(d, "type"),
            id=_str(d, "id"),
            name=_str(d, "name"),
            text=_str(d, "text"),
            input=d.get("input"),
        )


@dataclass(frozen=True)
class ToolResultBlock:
    """A tool_result (or synthetic text) block inside a user message."""

    type: str
    tool_use_id: str = ""
    content: Any = None
    text: str = ""
    is_error: bool = False

    @classmethod
    def from_dict(cls, d) -> "ToolResultBlock":
        d = _obj(d, "tool result block")
        return cls(
            type=_str(d, "type"),
            tool_use_id=_str(d, "tool_use_id"),
            content=d.get("content"),
            text=_str(d, "text"),
            is_error=_bool(d, "is_error"),
        )


# ── Events ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SystemEvent:
    subtype: str = ""
    model: str = ""
    cwd: str = ""
    tools: tuple[str, ...] = ()
    agents: tuple[str, ...] = ()
    permission_mode: str = ""
    claude_code_version: str = ""
    session_id: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> "SystemEvent":
        return cls(
            subtype=_str(d, "subtype"),
            model=_str(d, "model"),
            cwd=_str(d, "cwd"),
            tools=_strs(d, "tools"),
            agents=_strs(d, "agents"),
            permission_mode=_str(d, "permissionMode"),
            claude_code_version=_str(d, "claude_code_version"),
            session_id=_str(d, "session_id"),
        )


@dataclass(frozen=True)
class AssistantMessage:
    id: str = ""
    model: str = ""
    content: tuple[ContentBlock, ...] = ()
    usage: dict = field(default_factory=dict)


@dataclass(frozen=True)
class AssistantEvent:
    message: AssistantMessage = field(default_factory=AssistantMessage)
    parent_tool_use_id: Optional[str] = None
    error: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> "AssistantEvent":
        msg = _obj(d.get("message"), "message")
        content = tuple(ContentBlock.from_dict(b) for b in _list(msg.get("content"), "message.content"))
        message = AssistantMessage(
            id=_str(msg, "id"),
            model=_str(msg, "model"),
            content=content,
            usage=_obj(msg.get("usage"), "message.usage"),
        )
        parent = _parent_id(d) or _parent_id(msg, "parentToolUseID")
        return cls(message=message, parent_tool_use_id=parent, error=_str(d, "error"))


@dataclass(frozen=True)
class UserEvent:
    content: tuple[ToolResultBlock, ...] = ()
    tool_use_result: Any = None
    parent_tool_use_id: Optional[str] = None
    is_synthetic: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> "UserEvent":
        msg = _obj(d.get("message"), "message")
        raw_content = msg.get("content")
        if isinstance(raw_content, str):
            # Plain prompts carry a bare string instead of blocks.
            content = (ToolResultBlock(type="text", text=raw_content),)
        else:
            content = tuple(ToolResultBlock.from_dict(b) for b in _list(raw_content, "message.content"))
        return cls(
            content=content,
            tool_use_result=d.get("tool_use_result"),
            parent_tool_use_id=_parent_id(d),
            is_synthetic=_bool(d, "isSynthetic"),
        )


@dataclass(frozen=True)
class StreamSubEvent:
    type: str
    index: int = 0
    content_block: Any = None
    delta: Any = None
    message: dict = field(default_factory=dict)
    usage: dict = field(default_factory=dict)


@dataclass(frozen=True)
class StreamEvent:
    event: StreamSubEvent
    parent_tool_use_id: Optional[str] = None

    @classmethod
    def from_dict(cls, d: dict) -> "StreamEvent":
        ev = _obj(d.get("event"), "event")
        sub = StreamSubEvent(
            type=_str(ev, "type"),
            index=_int(ev, "index"),
            content_block=ev.get("content_block"),
            delta=ev.get("delta"),
            message=_obj(ev.get("message"), "event.message"),
            usage=_obj(ev.get("usage"), "event.usage"),
        )
        return cls(event=sub, parent_tool_use_id=_parent_id(d))


@dataclass(frozen=True)
class PermissionDenial:
    tool_name: str
    tool_use_id: str = ""


@dataclass(frozen=True)
class ResultEvent:
    subtype: str = ""
    is_error: bool = False
    duration_ms: int = 0
    duration_api_ms: int = 0
    num_turns: int = 0
    result: str = ""
    total_cost_usd: float = 0.0
    usage: dict = field(default_factory=dict)
    permission_denials: tuple[PermissionDenial, ...] = ()
    errors: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, d: dict) -> "ResultEvent":
        denials = tuple(
            PermissionDenial(tool_name=_str(p, "tool_name"), tool_use_id=_str(p, "tool_use_id"))
            for p in (_obj(x, "permission denial") for x in _list(d.get("permission_denials"), "permission_denials"))
        )
        errors = tuple(str(e) for e in _list(d.get("errors"), "errors"))
        return cls(
            subtype=_str(d, "subtype"),
            is_error=_bool(d, "is_error"),
            duration_ms=_int(d, "duration_ms"),
            duration_api_ms=_int(d, "duration_api_ms"),
            num_turns=_int(d, "num_turns"),
            result=_str(d, "result"),
            total_cost_usd=_float(d, "total_cost_usd"),
            usage=_obj(d.get("usage"), "usage"),
            permission_denials=denials,
            errors=errors,
        )


@dataclass(frozen=True)
class ParseError:
    """A line that could not be turned into an event."""

    kind: ParseErrorKind
    line: str
    error: str = ""
    event_type: str = ""

    @property
    def message(self) -> str:
        if self.kind is ParseErrorKind.UNKNOWN_TYPE:
            return f"Unknown event type: {self.event_type}"
        if self.kind is ParseErrorKind.INVALID:
            return f"Error parsing {self.event_type} event: {self.error}"
        return f"Error parsing JSON: {self.error}"


Event = Union[SystemEvent, AssistantEvent, UserEvent, StreamEvent, ResultEvent, ParseError]

_DECODERS = {
    "system": SystemEvent.from_dict,
    "assistant": AssistantEvent.from_dict,
    "user": UserEvent.from_dict,
    "stream_event": StreamEvent.from_dict,
    "result": ResultEvent.from_dict,
}

EVENT_TYPES = tuple(_DECODERS)


def parse_line(line: str) -> Event | None:
    """Classify one NDJSON line. Blank lines yield None."""
    line = line.rstrip("\r\n")
    if not line.strip():
        return None

    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        return ParseError(ParseErrorKind.MALFORMED, line, str(e))
    if not isinstance(data, dict):
        return ParseError(ParseErrorKind.MALFORMED, line, f"expected an object, got {type(data).__name__}")

    etype = data.get("type")
    decode = _DECODERS.get(etype) if isinstance(etype, str) else None
    if decode is None:
        return ParseError(ParseErrorKind.UNKNOWN_TYPE, line, event_type=str(etype or ""))

    try:
        return decode(data)
    except (ValueError, TypeError) as e:
        return ParseError(ParseErrorKind.INVALID, line, str(e), event_type=etype)
