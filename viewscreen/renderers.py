"""Session-level renderers and the RendererSet the processor works with."""

from __future__ import annotations

from typing import Optional

from viewscreen.blockstate import BlockState
from viewscreen.events import AssistantEvent, ResultEvent, SystemEvent
from viewscreen.results import Highlighter, UserRenderer
from viewscreen.state import config
from viewscreen.tokens import fmt_duration
from viewscreen.tracker import ToolUseTracker
from viewscreen.ui import (
    BULLET,
    C,
    MarkdownRenderer,
    OUTPUT_CONTINUE,
    OUTPUT_PREFIX,
    StreamingIndicator,
    paint,
)


def _field(label: str, value, first: bool = False) -> str:
    prefix = OUTPUT_PREFIX if first else OUTPUT_CONTINUE
    return f"{prefix}{paint(label, C.DIM)} {value}\n"


class SystemRenderer:
    """
    Session Started header:

        ● Session Started
          ⎿  Model: claude-sonnet-4
             Version: 2.0.1
             CWD: /work
             Tools: 17 available
    """

    def render(self, event: SystemEvent) -> str:
        out = [
            paint(f"{BULLET}Session Started", C.BOLD) + "\n",
            _field("Model:", event.model, first=True),
            _field("Version:", event.claude_code_version),
            _field("CWD:", event.cwd),
            _field("Tools:", f"{len(event.tools)} available"),
        ]
        if config.verbose and event.agents:
            out.append(_field("Agents:", ", ".join(event.agents)))
        out.append("\n")
        return "".join(out)


class AssistantRenderer:
    """Text blocks of a complete assistant message; tool_use blocks are buffered elsewhere."""

    def __init__(self, markdown):
        self.markdown = markdown

    def render(self, event: AssistantEvent, text_streamed: bool) -> str:
        out = []
        if event.error:
            out.append(paint(f"{BULLET}Error", C.RED) + "\n")
            out.append(f"{OUTPUT_PREFIX}{paint(event.error, C.RED)}\n")

        if not text_streamed:
            for block in event.message.content:
                if block.type != "text":
                    continue
                rendered = self.markdown.render(block.text)
                out.append(rendered if rendered.endswith("\n") else rendered + "\n")
        return "".join(out)


class ResultRenderer:
    """Session summary printed on the final result event."""

    def render(self, event: ResultEvent) -> str:
        out = ["\n"]
        if event.is_error:
            out.append(paint(f"{BULLET}Session Error", C.RED) + "\n")
            for err in event.errors:
                out.append(f"{OUTPUT_PREFIX}{paint(err, C.RED)}\n")
        else:
            out.append(paint(f"{BULLET}Session Complete", C.GREEN) + "\n")

        duration = f"{fmt_duration(event.duration_ms)} (API: {fmt_duration(event.duration_api_ms)})"
        out.append(_field("Duration:", duration, first=True))
        out.append(_field("Turns:", event.num_turns))
        out.append(_field("Cost:", f"${event.total_cost_usd:.4f}"))

        if config.show_usage:
            u = event.usage
            out.append(_field(
                "Tokens:",
                f"in={u.get('input_tokens', 0)} out={u.get('output_tokens', 0)} "
                f"(cache: created={u.get('cache_creation_input_tokens', 0)} "
                f"read={u.get('cache_read_input_tokens', 0)})",
            ))

        if event.permission_denials:
            out.append(f"{OUTPUT_CONTINUE}{paint('Permission Denials:', C.YELLOW)} "
                       f"{len(event.permission_denials)}\n")
            for denial in event.permission_denials:
                out.append(f"{OUTPUT_CONTINUE}  - {denial.tool_name} ({denial.tool_use_id})\n")
        return "".join(out)


class RendererSet:
    """Everything one session's processor renders with, plus its block/tool state."""

    def __init__(
        self,
        markdown=None,
        indicator: Optional[StreamingIndicator] = None,
        highlighter: Optional[Highlighter] = None,
    ):
        self.markdown = markdown if markdown is not None else MarkdownRenderer(config.width)
        self.indicator = indicator
        self.system = SystemRenderer()
        self.assistant = AssistantRenderer(self.markdown)
        self.user = UserRenderer(self.markdown, highlighter)
        self.result = ResultRenderer()
        self.blocks = BlockState()
        self.pending_tools = ToolUseTracker()

    def set_width(self, width: int):
        if hasattr(self.markdown, "set_width"):
            self.markdown.set_width(width)
