from __future__ import annotations

import json

import pytest

from viewscreen.events import (
    AssistantEvent,
    EVENT_TYPES,
    ParseError,
    ParseErrorKind,
    ResultEvent,
    StreamEvent,
    SystemEvent,
    UserEvent,
    parse_line,
)


@pytest.mark.parametrize("raw", ["", "   ", "\n", "\t\r\n"])
def test_blank_lines_yield_nothing(raw: str) -> None:
    assert parse_line(raw) is None


def test_invalid_json_is_malformed() -> None:
    ev = parse_line("{not json")
    assert isinstance(ev, ParseError)
    assert ev.kind is ParseErrorKind.MALFORMED
    assert ev.line == "{not json"
    assert ev.message.startswith("Error parsing JSON: ")


@pytest.mark.parametrize("raw", ["[1, 2]", '"text"', "42", "null"])
def test_non_object_is_malformed(raw: str) -> None:
    ev = parse_line(raw)
    assert isinstance(ev, ParseError)
    assert ev.kind is ParseErrorKind.MALFORMED


def test_unknown_type_is_distinct_from_malformed() -> None:
    ev = parse_line('{"type": "bogus"}')
    assert isinstance(ev, ParseError)
    assert ev.kind is ParseErrorKind.UNKNOWN_TYPE
    assert ev.message == "Unknown event type: bogus"


@pytest.mark.parametrize("raw, shown", [("{}", ""), ('{"type": 5}', "5")])
def test_missing_or_non_string_type_is_unknown(raw: str, shown: str) -> None:
    ev = parse_line(raw)
    assert ev.kind is ParseErrorKind.UNKNOWN_TYPE
    assert ev.event_type == shown


@pytest.mark.parametrize("payload", [
    {"type": "assistant", "message": "hello"},
    {"type": "assistant", "message": {"content": "not a list"}},
    {"type": "user", "message": {"content": [{"type": "tool_result", "is_error": "yes"}]}},
    {"type": "stream_event", "event": []},
    {"type": "result", "num_turns": "three"},
    {"type": "system", "tools": "Bash"},
])
def test_wrong_payload_shape_is_invalid(payload: dict) -> None:
    ev = parse_line(json.dumps(payload))
    assert isinstance(ev, ParseError)
    assert ev.kind is ParseErrorKind.INVALID
    assert ev.message.startswith(f"Error parsing {payload['type']} event: ")


def test_known_types() -> None:
    assert set(EVENT_TYPES) == {"system", "assistant", "user", "stream_event", "result"}


def test_trailing_newline_is_ignored() -> None:
    ev = parse_line('{"type": "system", "model": "m"}\r\n')
    assert isinstance(ev, SystemEvent)
    assert ev.model == "m"


def test_system_event() -> None:
    ev = parse_line(json.dumps({
        "type": "system",
        "subtype": "init",
        "model": "claude-sonnet-4",
        "cwd": "/work",
        "tools": ["Bash", {"name": "Read"}],
        "agents": ["general-purpose"],
        "permissionMode": "default",
        "claude_code_version": "2.0.1",
        "session_id": "abc",
    }))
    assert isinstance(ev, SystemEvent)
    assert ev.tools == ("Bash", "Read")
    assert ev.agents == ("general-purpose",)
    assert ev.permission_mode == "default"
    assert ev.claude_code_version == "2.0.1"


def test_assistant_event_blocks() -> None:
    ev = parse_line(json.dumps({
        "type": "assistant",
        "message": {
            "id": "msg_1",
            "content": [
                {"type": "text", "text": "Looking."},
                {"type": "tool_use", "id": "t1", "name": "Bash", "input": {"command": "ls"}},
            ],
        },
    }))
    assert isinstance(ev, AssistantEvent)
    text, tool = ev.message.content
    assert text.text == "Looking."
    assert tool.id == "t1"
    assert tool.input == {"command": "ls"}
    assert ev.parent_tool_use_id is None


def test_assistant_parent_id_sources() -> None:
    nested = {"type": "assistant", "message": {"content": [], "parentToolUseID": "from-message"}}
    assert parse_line(json.dumps(nested)).parent_tool_use_id == "from-message"

    both = dict(nested, parent_tool_use_id="top-level")
    assert parse_line(json.dumps(both)).parent_tool_use_id == "top-level"


def test_user_event_tool_results() -> None:
    ev = parse_line(json.dumps({
        "type": "user",
        "message": {"content": [
            {"type": "tool_result", "tool_use_id": "t1", "content": [{"type": "text", "text": "ok"}]},
            {"type": "tool_result", "tool_use_id": "t2", "content": "boom", "is_error": True},
        ]},
        "tool_use_result": {"stdout": "ok"},
        "parent_tool_use_id": "",
    }))
    assert isinstance(ev, UserEvent)
    assert [b.tool_use_id for b in ev.content] == ["t1", "t2"]
    assert ev.content[1].is_error
    assert ev.tool_use_result == {"stdout": "ok"}
    assert ev.parent_tool_use_id is None


def test_user_event_plain_string_content() -> None:
    ev = parse_line(json.dumps({
        "type": "user",
        "message": {"content": "Do the thing"},
        "isSynthetic": True,
    }))
    assert ev.content[0].type == "text"
    assert ev.content[0].text == "Do the thing"
    assert ev.is_synthetic


def test_stream_event() -> None:
    ev = parse_line(json.dumps({
        "type": "stream_event",
        "event": {
            "type": "content_block_delta",
            "index": 2,
            "delta": {"type": "text_delta", "text": "hi"},
        },
        "parent_tool_use_id": "t9",
    }))
    assert isinstance(ev, StreamEvent)
    assert ev.event.type == "content_block_delta"
    assert ev.event.index == 2
    assert ev.event.delta == {"type": "text_delta", "text": "hi"}
    assert ev.parent_tool_use_id == "t9"


def test_result_event() -> None:
    ev = parse_line(json.dumps({
        "type": "result",
        "subtype": "success",
        "is_error": False,
        "duration_ms": 1500,
        "duration_api_ms": 1200,
        "num_turns": 4,
        "result": "Done",
        "total_cost_usd": 0.0123,
        "usage": {"input_tokens": 10, "output_tokens": 20},
        "permission_denials": [{"tool_name": "Bash", "tool_use_id": "t1"}],
    }))
    assert isinstance(ev, ResultEvent)
    assert ev.num_turns == 4
    assert ev.total_cost_usd == pytest.approx(0.0123)
    assert ev.permission_denials[0].tool_name == "Bash"
    assert ev.errors == ()
