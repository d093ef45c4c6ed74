"""Tool header rendering: ● ToolName args"""

from __future__ import annotations

import json
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional, Union

from viewscreen.events import ContentBlock
from viewscreen.state import config
from viewscreen.ui import C, NESTED_PREFIX, paint

MAX_ARG_LEN = 80
MAX_UNKNOWN_PREVIEW = 100


# ── Argument extraction rules ───────────────────────────────────────────────

@dataclass(frozen=True)
class FieldRule:
    """Show one string field of the input."""

    field: str
    is_path: bool = False
    fallback: str = ""       # tried when `field` is absent (path lookup only)


@dataclass(frozen=True)
class CountRule:
    """Show the length of an array field: "3 items"."""

    field: str
    singular: str
    plural: str


@dataclass(frozen=True)
class NoArgs:
    pass


ToolRule = Union[FieldRule, CountRule, NoArgs]

TOOL_RULES = MappingProxyType({
    # File operations
    "Read":         FieldRule("file_path", is_path=True),
    "Write":        FieldRule("file_path", is_path=True),
    "Edit":         FieldRule("file_path", is_path=True),
    "NotebookEdit": FieldRule("notebook_path", is_path=True, fallback="file_path"),
    # Single field
    "Bash":         FieldRule("command"),
    "Glob":         FieldRule("pattern"),
    "Grep":         FieldRule("pattern"),
    "Task":         FieldRule("description"),
    "WebFetch":     FieldRule("url"),
    "WebSearch":    FieldRule("query"),
    "Skill":        FieldRule("skill"),
    "TaskOutput":   FieldRule("task_id"),
    "TaskStop":     FieldRule("task_id"),
    "ToolSearch":   FieldRule("query"),
    # Array counters
    "TodoWrite":       CountRule("todos", "item", "items"),
    "AskUserQuestion": CountRule("questions", "question", "questions"),
    # Nothing worth showing
    "EnterPlanMode": NoArgs(),
    "ExitPlanMode":  NoArgs(),
})


def get_tool_arg(name: str, input_data: Optional[dict], verbose: Optional[bool] = None) -> str:
    """Argument string shown after the tool name in its header."""
    input_data = input_data or {}
    rule = TOOL_RULES.get(name)
    if isinstance(rule, FieldRule):
        value = input_data.get(rule.field)
        return value if isinstance(value, str) else ""
    if isinstance(rule, CountRule):
        items = input_data.get(rule.field)
        if not isinstance(items, list):
            return ""
        return f"1 {rule.singular}" if len(items) == 1 else f"{len(items)} {rule.plural}"
    if isinstance(rule, NoArgs):
        return ""

    # Unknown tool: compact JSON preview, verbose only
    if verbose is None:
        verbose = config.verbose
    if verbose and input_data:
        try:
            s = json.dumps(input_data, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
        except (TypeError, ValueError):
            return ""
        if len(s) > MAX_UNKNOWN_PREVIEW:
            s = s[:MAX_UNKNOWN_PREVIEW] + "..."
        return s
    return ""


def get_file_path(name: str, input_data: Optional[dict]) -> str:
    rule = TOOL_RULES.get(name)
    if not isinstance(rule, FieldRule) or not rule.is_path or not input_data:
        return ""
    for key in (rule.field, rule.fallback):
        if key and isinstance(input_data.get(key), str):
            return input_data[key]
    return ""


def is_file_path_tool(name: str) -> bool:
    rule = TOOL_RULES.get(name)
    return isinstance(rule, FieldRule) and rule.is_path


def block_input(block: ContentBlock) -> Optional[dict]:
    """The block's input when it is a JSON object, else None."""
    return block.input if isinstance(block.input, dict) else None


def tool_arg_from_block(block: ContentBlock) -> str:
    data = block_input(block)
    if data is None:
        return ""
    return get_tool_arg(block.name, data)


# ── Header rendering ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ToolContext:
    """Which tool produced the next result, and on which file."""

    tool_name: str = ""
    file_path: str = ""


class HeaderRenderer:
    """Renders `[prefix]● Name args` lines."""

    def __init__(self, icon: str = "●", prefix: str = "", nested: bool = False):
        self.icon = icon or "●"
        self.prefix = NESTED_PREFIX if nested else prefix

    def render(self, name: str, input_data: Optional[dict]) -> tuple[str, ToolContext]:
        args = get_tool_arg(name, input_data)
        if len(args) > MAX_ARG_LEN:
            args = args[:MAX_ARG_LEN - 3] + "..."

        line = f"{self.prefix}{self.icon} {paint(name, C.BOLD, C.CYAN)}"
        if args:
            # Newlines in commands would break the one-line header
            args = args.replace("\n", " ")
            if is_file_path_tool(name):
                line += " " + paint(args, C.DIM, C.UNDERLINE_DOTTED)
            else:
                line += " " + paint(args, C.DIM)
        return line + "\n", ToolContext(name, get_file_path(name, input_data))

    def render_name_only(self, name: str) -> tuple[str, ToolContext]:
        """Fallback header when the tool input could not be parsed."""
        return f"{self.prefix}{self.icon} {paint(name, C.BOLD, C.CYAN)}\n", ToolContext(name)

    def render_block(self, block: ContentBlock) -> tuple[str, ToolContext]:
        data = block_input(block)
        if data is None:
            return self.render_name_only(block.name)
        return self.render(block.name, data)


def render_resolved(block: ContentBlock, is_nested: bool) -> tuple[str, ToolContext]:
    return HeaderRenderer(nested=is_nested).render_block(block)
