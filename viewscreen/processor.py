"""Turn typed events into rendered text while tracking block and tool state.

The processor is shared by both front-ends: line mode writes each
``ProcessResult.rendered`` straight to stdout, the dashboard appends it to
its scrollback. It never writes anything itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from viewscreen.blockstate import BlockType
from viewscreen.events import (
    AssistantEvent,
    ParseError,
    ResultEvent,
    StreamEvent,
    SystemEvent,
    UserEvent,
)
from viewscreen.renderers import RendererSet
from viewscreen.state import SessionState
from viewscreen.tools import HeaderRenderer, ToolContext, render_resolved, tool_arg_from_block
from viewscreen.tracker import PendingTool
from viewscreen.ui import C, OUTPUT_PREFIX, dbg, paint


@dataclass(frozen=True)
class ProcessResult:
    rendered: str = ""
    has_pending_tools: bool = False


class EventProcessor:
    """Single-threaded: only one caller may feed events at a time."""

    def __init__(self, state: SessionState, renderers: RendererSet | None = None):
        self.state = state
        self.renderers = renderers or RendererSet()
        # Last tool seen; its file path picks the lexer for the next result
        self._tool_context = ToolContext()

    @property
    def tool_context(self) -> ToolContext:
        return self._tool_context

    def set_width(self, width: int):
        self.renderers.set_width(width)

    def has_pending_tools(self) -> bool:
        return len(self.renderers.pending_tools) > 0

    def pending_tools(self) -> Iterator[tuple[str, PendingTool]]:
        return self.renderers.pending_tools.items()

    def render_pending_tool(self, pending: PendingTool, icon: str) -> str:
        """Header for a still-running tool, drawn with a spinner frame as icon."""
        nested = self.renderers.pending_tools.is_nested(pending)
        rendered, _ = HeaderRenderer(icon=icon, nested=nested).render_block(pending.block)
        return rendered

    def process(self, event) -> ProcessResult:
        if isinstance(event, StreamEvent):
            return self._process_stream(event)
        if isinstance(event, AssistantEvent):
            return self._process_assistant(event)
        if isinstance(event, UserEvent):
            return self._process_user(event)
        if isinstance(event, SystemEvent):
            return self._process_system(event)
        if isinstance(event, ResultEvent):
            return self._process_result(event)
        if isinstance(event, ParseError):
            dbg(f"[parse-error] {event.message}")
        return ProcessResult()

    def _result(self, rendered: str) -> ProcessResult:
        return ProcessResult(rendered, self.has_pending_tools())

    # ── system ──

    def _process_system(self, event: SystemEvent) -> ProcessResult:
        self.state.update_from_system_event(event)
        return ProcessResult(self.renderers.system.render(event))

    # ── stream_event ──

    def _process_stream(self, event: StreamEvent) -> ProcessResult:
        ev = event.event
        blocks = self.renderers.blocks
        indicator = self.renderers.indicator

        if ev.type == "content_block_start":
            blocks.start_block(ev.index, ev.content_block)
            if blocks.in_tool_use_block:
                self.state.set_current_tool(blocks.tool_name)

        elif ev.type == "content_block_delta":
            delta = ev.delta if isinstance(ev.delta, dict) else {}
            if delta.get("type") == "text_delta" and isinstance(delta.get("text"), str):
                if indicator is not None:
                    indicator.show()
                blocks.accumulate_text(delta["text"])
            elif delta.get("type") == "input_json_delta" and isinstance(delta.get("partial_json"), str):
                blocks.accumulate_tool_input(delta["partial_json"])

        elif ev.type == "content_block_stop":
            if indicator is not None:
                indicator.clear()
            closed = blocks.stop_block(ev.index)
            if closed is BlockType.TEXT:
                text = blocks.text_content
                return ProcessResult(self.renderers.markdown.render(text) if text else "")
            if closed is BlockType.TOOL_USE:
                return ProcessResult(self._render_streamed_tool())

        elif ev.type == "message_stop":
            blocks.reset_message()

        # message_start / message_delta carry nothing to draw
        return ProcessResult()

    def _render_streamed_tool(self) -> str:
        blocks = self.renderers.blocks
        header = HeaderRenderer()
        tool_input = blocks.parse_tool_input()
        if tool_input is None:
            dbg(f"unparsable input for {blocks.tool_name}: {blocks.tool_input[:120]!r}")
            rendered, self._tool_context = header.render_name_only(blocks.tool_name)
        else:
            rendered, self._tool_context = header.render(blocks.tool_name, tool_input)
        return rendered

    # ── assistant ──

    def _process_assistant(self, event: AssistantEvent) -> ProcessResult:
        self.state.increment_turn_count()
        r = self.renderers

        buffered = r.pending_tools.buffer_from_assistant_message(
            event.message.content,
            event.parent_tool_use_id,
            r.blocks.in_tool_use_block,
        )
        if buffered:
            for block in event.message.content:
                if block.type == "tool_use" and block.id:
                    self.state.set_current_tool(block.name, tool_arg_from_block(block))
                    break

        rendered = r.assistant.render(event, text_streamed=r.blocks.in_text_block)
        r.blocks.reset()
        return self._result(rendered)

    # ── user ──

    def _process_user(self, event: UserEvent) -> ProcessResult:
        self.state.update_from_tool_use_result(event.tool_use_result)
        r = self.renderers

        if event.parent_tool_use_id and any(b.type == "text" for b in event.content):
            return self._process_subagent_prompt(event)

        out = []
        nested = False
        for match in r.pending_tools.match_from_user_message(event.content):
            nested = match.is_nested
            rendered, self._tool_context = render_resolved(match.block, match.is_nested)
            if not match.header_rendered:
                out.append(rendered)

        if not r.pending_tools:
            self.state.clear_current_tool()

        out.append(r.user.render(event, self._tool_context, nested=nested))
        return self._result("".join(out))

    def _process_subagent_prompt(self, event: UserEvent) -> ProcessResult:
        """A Task hands its prompt to a sub-agent: show the Task header first."""
        r = self.renderers
        out = []
        nested = False
        resolved = r.pending_tools.resolve_parent_early(event.parent_tool_use_id)
        if resolved is not None:
            nested = resolved.is_nested
            rendered, _ = render_resolved(resolved.block, resolved.is_nested)
            out.append(rendered)
        out.append(r.user.render_subagent_prompt(event, nested=nested))
        return self._result("".join(out))

    # ── result ──

    def _process_result(self, event: ResultEvent) -> ProcessResult:
        out = []
        for orphan in self.renderers.pending_tools.flush_all():
            if not orphan.header_rendered:
                rendered, _ = render_resolved(orphan.block, orphan.is_nested)
                out.append(rendered)
            out.append(f"{OUTPUT_PREFIX}{paint('(no result)', C.DIM)}\n")

        self.state.clear_current_tool()
        self.state.update_from_result_event(event)
        out.append(self.renderers.result.render(event))
        return ProcessResult("".join(out))
