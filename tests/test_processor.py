from __future__ import annotations

import pytest
from conftest import FakeIndicator, FakeMarkdown, event

from viewscreen.events import ParseError, parse_line
from viewscreen.processor import EventProcessor, ProcessResult
from viewscreen.renderers import RendererSet
from viewscreen.state import SessionState, config
from viewscreen.tools import ToolContext


@pytest.fixture
def proc() -> EventProcessor:
    return EventProcessor(SessionState(), RendererSet(markdown=FakeMarkdown(), indicator=FakeIndicator()))


def stream(proc: EventProcessor, **ev) -> ProcessResult:
    return proc.process(event(type="stream_event", event=ev))


def assistant(proc: EventProcessor, *content, parent=None, **extra) -> ProcessResult:
    data = {"type": "assistant", "message": {"content": list(content)}, **extra}
    if parent:
        data["parent_tool_use_id"] = parent
    return proc.process(event(**data))


def user_result(proc: EventProcessor, tool_id: str, text: str = "done", **extra) -> ProcessResult:
    return proc.process(event(
        type="user",
        message={"content": [{"type": "tool_result", "tool_use_id": tool_id, "content": text}]},
        **extra,
    ))


def tool_use(tool_id: str, name: str, **input_data) -> dict:
    return {"type": "tool_use", "id": tool_id, "name": name, "input": input_data}


def finish(proc: EventProcessor, **extra) -> ProcessResult:
    data = {"type": "result", "subtype": "success", "duration_ms": 1234, "duration_api_ms": 1000,
            "num_turns": 3, "total_cost_usd": 0.5,
            "usage": {"input_tokens": 10, "output_tokens": 20, "cache_read_input_tokens": 5}}
    data.update(extra)
    return proc.process(event(**data))


# ── Streaming ──

def test_streamed_text_renders_once(proc: EventProcessor) -> None:
    stream(proc, type="message_start", message={"id": "m1"})
    stream(proc, type="content_block_start", index=0, content_block={"type": "text", "text": ""})
    assert stream(proc, type="content_block_delta", index=0,
                  delta={"type": "text_delta", "text": "Hel"}).rendered == ""
    stream(proc, type="content_block_delta", index=0, delta={"type": "text_delta", "text": "lo"})
    assert stream(proc, type="content_block_stop", index=0).rendered == "<md>Hello</md>\n"
    assert proc.renderers.indicator.calls == ["show", "show", "clear"]

    # The complete message repeats the text; it was already shown
    assert assistant(proc, {"type": "text", "text": "Hello"}).rendered == ""
    assert proc.renderers.blocks.text_content == ""


def test_unstreamed_text_renders_from_message(proc: EventProcessor) -> None:
    assert assistant(proc, {"type": "text", "text": "Hi"}).rendered == "<md>Hi</md>\n"
    assert proc.state.turn_count == 1


def test_streamed_tool_header_then_result(proc: EventProcessor) -> None:
    stream(proc, type="content_block_start", index=1,
           content_block={"type": "tool_use", "id": "t1", "name": "Bash"})
    assert proc.state.current_tool == "Bash"
    stream(proc, type="content_block_delta", index=1,
           delta={"type": "input_json_delta", "partial_json": '{"command":'})
    stream(proc, type="content_block_delta", index=1,
           delta={"type": "input_json_delta", "partial_json": ' "ls"}'})
    assert stream(proc, type="content_block_stop", index=1).rendered == "● Bash ls\n"
    assert proc.tool_context == ToolContext("Bash", "")

    res = assistant(proc, tool_use("t1", "Bash", command="ls"))
    assert res.rendered == ""
    assert not res.has_pending_tools

    # No second header for the streamed tool
    assert user_result(proc, "t1", "a\nb").rendered == "  ⎿  Read 2 lines\n"


def test_streamed_tool_with_bad_input_renders_name_only(proc: EventProcessor) -> None:
    stream(proc, type="content_block_start", index=0, content_block={"type": "tool_use", "name": "Bash"})
    stream(proc, type="content_block_delta", index=0,
           delta={"type": "input_json_delta", "partial_json": '{"command":'})
    assert stream(proc, type="content_block_stop", index=0).rendered == "● Bash\n"


def test_stop_for_other_index_renders_nothing(proc: EventProcessor) -> None:
    stream(proc, type="content_block_start", index=0, content_block={"type": "text"})
    stream(proc, type="content_block_delta", index=0, delta={"type": "text_delta", "text": "x"})
    assert stream(proc, type="content_block_stop", index=7).rendered == ""


def test_unrecognised_delta_is_ignored(proc: EventProcessor) -> None:
    stream(proc, type="content_block_start", index=0, content_block={"type": "text"})
    stream(proc, type="content_block_delta", index=0, delta={"type": "thinking_delta", "thinking": "hm"})
    stream(proc, type="content_block_delta", index=0, delta="garbage")
    assert proc.renderers.blocks.text_content == ""


def test_message_stop_forgets_index(proc: EventProcessor) -> None:
    stream(proc, type="content_block_start", index=2, content_block={"type": "text"})
    stream(proc, type="message_stop")
    assert proc.renderers.blocks.index == -1
    assert proc.renderers.blocks.in_text_block


# ── Buffered tools ──

def test_buffered_tool_header_on_result(proc: EventProcessor) -> None:
    res = assistant(proc, tool_use("t1", "Read", file_path="/src/app.py"))
    assert res.rendered == ""
    assert res.has_pending_tools
    assert proc.state.current_tool == "Read"
    assert proc.state.current_tool_input == "/src/app.py"

    res = user_result(proc, "t1", "x\ny")
    assert res.rendered == "● Read /src/app.py\n  ⎿  Read 2 lines\n"
    assert not res.has_pending_tools
    assert proc.state.current_tool == ""
    assert proc.tool_context == ToolContext("Read", "/src/app.py")


def test_result_for_unknown_tool_renders_body_only(proc: EventProcessor) -> None:
    assert user_result(proc, "ghost", "x").rendered == "  ⎿  Read 1 lines\n"


def test_malformed_tool_use_result_does_not_abort(proc: EventProcessor) -> None:
    result = user_result(proc, "ghost", "x", tool_use_result={
        "filePath": "/a.py",
        "structuredPatch": [{"oldStart": "1", "lines": [" a"]}],
    })
    assert result.rendered == "  ⎿  Read 1 lines\n"


def test_pending_tool_rendering(proc: EventProcessor) -> None:
    assistant(proc, tool_use("t1", "Bash", command="sleep 5"))
    [(tool_id, pending)] = list(proc.pending_tools())
    assert tool_id == "t1"
    assert proc.render_pending_tool(pending, "⠋") == "⠋ Bash sleep 5\n"


def test_assistant_error_header(proc: EventProcessor) -> None:
    res = assistant(proc, error="rate_limit")
    assert res.rendered == "● Error\n  ⎿  rate_limit\n"


# ── Sub-agents ──

def test_subagent_flow(proc: EventProcessor) -> None:
    assistant(proc, tool_use("task", "Task", description="Explore", prompt="Find things"))

    res = proc.process(event(
        type="user",
        message={"content": [{"type": "text", "text": "Find things"}]},
        parent_tool_use_id="task",
    ))
    assert res.rendered == "● Task Explore\n  ⎿  Find things\n"
    assert res.has_pending_tools

    assistant(proc, tool_use("c1", "Grep", pattern="foo"), parent="task")
    [_, (_, child)] = list(proc.pending_tools())
    assert proc.render_pending_tool(child, "⠋") == "  │ ⠋ Grep foo\n"

    res = user_result(proc, "c1", "hit", parent_tool_use_id="task")
    assert res.rendered == "  │ ● Grep foo\n  │   ⎿  Read 1 lines\n"

    # Task header was printed early: only its result now
    res = user_result(proc, "task", "summary")
    assert res.rendered == "  ⎿  Read 1 lines\n"
    assert not res.has_pending_tools


def test_second_subagent_prompt_does_not_repeat_header(proc: EventProcessor) -> None:
    assistant(proc, tool_use("task", "Task", description="Explore"))
    prompt = dict(type="user", message={"content": [{"type": "text", "text": "go"}]}, parent_tool_use_id="task")
    proc.process(event(**prompt))
    assert proc.process(event(**prompt)).rendered == "  ⎿  go\n"


def test_subagent_prompt_for_unknown_parent(proc: EventProcessor) -> None:
    res = proc.process(event(
        type="user",
        message={"content": [{"type": "text", "text": "orphan prompt"}]},
        parent_tool_use_id="nobody",
    ))
    assert res.rendered == "  ⎿  orphan prompt\n"


# ── Session end ──

def test_orphans_flushed_before_summary(proc: EventProcessor) -> None:
    assistant(proc, tool_use("t1", "Bash", command="sleep 100"))
    out = finish(proc).rendered
    assert out.startswith("● Bash sleep 100\n  ⎿  (no result)\n\n● Session Complete\n")
    assert not proc.has_pending_tools()
    assert proc.state.finished


def test_orphan_with_early_header_only_marks_no_result(proc: EventProcessor) -> None:
    assistant(proc, tool_use("task", "Task", description="Explore"))
    proc.process(event(type="user", message={"content": [{"type": "text", "text": "go"}]},
                       parent_tool_use_id="task"))
    out = finish(proc).rendered
    assert out.startswith("  ⎿  (no result)\n")


def test_session_summary(proc: EventProcessor) -> None:
    out = finish(proc).rendered
    assert "  ⎿  Duration: 1.23s (API: 1.00s)\n" in out
    assert "     Turns: 3\n" in out
    assert "     Cost: $0.5000\n" in out
    assert "     Tokens: in=10 out=20 (cache: created=0 read=5)\n" in out
    assert proc.state.turn_count == 3
    assert proc.state.cache_read == 5


def test_session_summary_without_usage(proc: EventProcessor) -> None:
    config.show_usage = False
    assert "Tokens:" not in finish(proc).rendered


def test_session_error_and_denials(proc: EventProcessor) -> None:
    out = finish(
        proc, is_error=True, errors=["max turns reached"],
        permission_denials=[{"tool_name": "Bash", "tool_use_id": "t9"}],
    ).rendered
    assert "● Session Error\n  ⎿  max turns reached\n" in out
    assert "     Permission Denials: 1\n" in out
    assert "       - Bash (t9)\n" in out
    assert proc.state.is_error


# ── Other events ──

def test_system_event_updates_state(proc: EventProcessor) -> None:
    out = proc.process(event(type="system", subtype="init", model="claude-sonnet-4", cwd="/w",
                             tools=["Bash", "Read"], agents=["explorer"],
                             claude_code_version="2.0.1")).rendered
    assert out == (
        "● Session Started\n"
        "  ⎿  Model: claude-sonnet-4\n"
        "     Version: 2.0.1\n"
        "     CWD: /w\n"
        "     Tools: 2 available\n"
        "\n"
    )
    assert proc.state.model == "claude-sonnet-4"
    assert proc.state.tools_count == 2


def test_system_event_lists_agents_when_verbose(proc: EventProcessor) -> None:
    config.verbose = True
    out = proc.process(event(type="system", agents=["explorer", "planner"])).rendered
    assert "     Agents: explorer, planner\n" in out


def test_parse_error_changes_nothing(proc: EventProcessor) -> None:
    err = parse_line("{oops")
    assert isinstance(err, ParseError)
    assert proc.process(err) == ProcessResult()


def test_set_width_reaches_markdown(proc: EventProcessor) -> None:
    proc.set_width(72)
    assert proc.renderers.markdown.width == 72


def test_tool_context_is_per_processor() -> None:
    a = EventProcessor(SessionState(), RendererSet(markdown=FakeMarkdown()))
    b = EventProcessor(SessionState(), RendererSet(markdown=FakeMarkdown()))
    assistant(a, tool_use("t1", "Read", file_path="/a.py"))
    user_result(a, "t1")
    assert a.tool_context.file_path == "/a.py"
    assert b.tool_context == ToolContext()
