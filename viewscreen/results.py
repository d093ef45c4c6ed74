"""Tool result rendering: diffs, write summaries, todo lists, plain output."""

from __future__ import annotations

import difflib
import io
from typing import Callable, Optional

from rich.console import Console
from rich.syntax import Syntax

from viewscreen.events import UserEvent
from viewscreen.state import config
from viewscreen.textutil import (
    DEFAULT_MAX_LINES,
    PrefixedWriter,
    clean_content,
    extract_text,
    truncate,
    truncate_lines,
    truncation_indicator,
)
from viewscreen.tools import ToolContext
from viewscreen.ui import (
    C,
    NESTED_OUTPUT_CONTINUE,
    NESTED_OUTPUT_PREFIX,
    OUTPUT_CONTINUE,
    OUTPUT_PREFIX,
    paint,
)

MAX_ERROR_LEN = 200
MAX_PROMPT_LINES = 3


class Highlighter:
    """Syntax highlighting through rich, keyed by the result's file path."""

    def __init__(self, no_color: Optional[bool] = None, theme: str = "monokai"):
        self.no_color = config.no_color if no_color is None else no_color
        self.theme = theme

    def highlight(self, code: str, file_path: str) -> str:
        if self.no_color or not file_path or not code:
            return code
        lexer = Syntax.guess_lexer(file_path, code)
        if lexer in ("default", "text"):
            return code
        syntax = Syntax(code, lexer, theme=self.theme, background_color="default")
        text = syntax.highlight(code)
        text.rstrip()
        buf = io.StringIO()
        Console(file=buf, force_terminal=True, color_system="truecolor").print(
            text, soft_wrap=True, end="",
        )
        return buf.getvalue()


# ── Specialised renderers (tried in order on tool_use_result) ──────────────

def render_edit_result(out: list[str], result: dict, prefix: str, cont: str,
                       highlighter: Highlighter) -> bool:
    """Diff with line numbers from Edit's structuredPatch (or old/new strings)."""
    file_path = result.get("filePath")
    if not isinstance(file_path, str) or not file_path:
        return False
    hunks = result.get("structuredPatch")
    if not isinstance(hunks, list) or not hunks:
        old_s, new_s = result.get("oldString"), result.get("newString")
        if not isinstance(old_s, str) or not isinstance(new_s, str) or old_s == new_s:
            return False
        hunks = _hunks_from_strings(old_s, new_s)
    hunks = [_clean_hunk(h) for h in hunks]
    if not hunks or None in hunks:
        return False

    max_line = 0
    for h in hunks:
        max_line = max(max_line,
                       h["oldStart"] + h["oldLines"],
                       h["newStart"] + h["newLines"])
    width = len(str(max_line))
    total = sum(len(h["lines"]) for h in hunks)
    if not total:
        return False

    pw = PrefixedWriter(out, prefix, cont)
    sep = paint("│", C.DIM)
    written = 0
    for h in hunks:
        old_no, new_no = h["oldStart"], h["newStart"]
        for line in h["lines"]:
            if written >= DEFAULT_MAX_LINES:
                pw.write_line(paint(truncation_indicator(total - written), C.DIM))
                return True
            op, body = line[0], line[1:]
            if op == "+":
                num, marker, body = new_no, paint("+", C.GREEN), paint(body, C.GREEN)
                new_no += 1
            elif op == "-":
                num, marker, body = old_no, paint("-", C.RED), paint(body, C.RED)
                old_no += 1
            else:
                num, marker = new_no, " "
                body = highlighter.highlight(body, file_path)
                old_no += 1
                new_no += 1
            pw.write_line(f"{paint(str(num).rjust(width), C.DIM)} {sep} {marker} {body}")
            written += 1
    return True


def _hunk_number(h: dict, key: str) -> Optional[int]:
    value = h.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _clean_hunk(h) -> Optional[dict]:
    """Validated copy of one structuredPatch hunk, or None if it can't be drawn."""
    if not isinstance(h, dict):
        return None
    numbers = {k: _hunk_number(h, k) for k in ("oldStart", "oldLines", "newStart", "newLines")}
    if None in numbers.values():
        return None
    lines = h.get("lines")
    if lines is None:
        lines = []
    if not isinstance(lines, list):
        return None
    numbers["lines"] = [line for line in lines if isinstance(line, str) and line]
    return numbers


def _hunks_from_strings(old_s: str, new_s: str) -> list[dict]:
    """Build structuredPatch-shaped hunks with difflib."""
    old_lines, new_lines = old_s.splitlines(), new_s.splitlines()
    hunks = []
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines)
    for group in matcher.get_grouped_opcodes(1):
        lines = []
        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                lines += [" " + s for s in old_lines[i1:i2]]
                continue
            if tag in ("replace", "delete"):
                lines += ["-" + s for s in old_lines[i1:i2]]
            if tag in ("replace", "insert"):
                lines += ["+" + s for s in new_lines[j1:j2]]
        first, last = group[0], group[-1]
        hunks.append({
            "oldStart": first[1] + 1, "oldLines": last[2] - first[1],
            "newStart": first[3] + 1, "newLines": last[4] - first[3],
            "lines": lines,
        })
    return hunks


def render_write_result(out: list[str], result: dict, prefix: str, cont: str,
                        highlighter: Highlighter) -> bool:
    if result.get("type") != "create" or not result.get("filePath"):
        return False
    content = result.get("content")
    line_count = len(content.split("\n")) if isinstance(content, str) and content else 1
    out.append(f"{prefix}{paint(f'Created ({line_count} lines)', C.DIM)}\n")
    return True


_TODO_MARKERS = {
    "completed":   ("✓", "GREEN", True),
    "in_progress": ("→", "YELLOW", False),
}


def render_todo_result(out: list[str], result: dict, prefix: str, cont: str,
                       highlighter: Highlighter) -> bool:
    todos = result.get("newTodos")
    if not isinstance(todos, list) or not todos:
        return False
    todos = [t for t in todos if isinstance(t, dict) and isinstance(t.get("status", "pending"), str)]
    if not todos:
        return False
    pw = PrefixedWriter(out, prefix, cont)
    for todo in todos:
        status = todo.get("status", "pending")
        glyph, color, muted = _TODO_MARKERS.get(status, ("○", "DIM", True))
        text = _str_field(todo, "content")
        if status == "in_progress" and _str_field(todo, "activeForm"):
            text = todo["activeForm"]
        pw.write_line(f"{paint(glyph, getattr(C, color))} {paint(text, C.DIM) if muted else text}")
    return True


def _str_field(d: dict, key: str) -> str:
    value = d.get(key)
    return value if isinstance(value, str) else ""


ResultHandler = Callable[[list, dict, str, str, Highlighter], bool]

RESULT_HANDLERS: tuple[ResultHandler, ...] = (
    render_edit_result,
    render_write_result,
    render_todo_result,
)


# ── User event renderer ─────────────────────────────────────────────────────

class UserRenderer:
    """Renders the tool results carried by a user event."""

    def __init__(self, markdown=None, highlighter: Optional[Highlighter] = None,
                 verbose: Optional[bool] = None):
        self.markdown = markdown
        self.highlighter = highlighter or Highlighter()
        self._verbose = verbose

    @property
    def verbose(self) -> bool:
        return config.verbose if self._verbose is None else self._verbose

    def render(self, event: UserEvent, context: ToolContext = ToolContext(),
               nested: bool = False) -> str:
        prefix, cont = (NESTED_OUTPUT_PREFIX, NESTED_OUTPUT_CONTINUE) if nested \
            else (OUTPUT_PREFIX, OUTPUT_CONTINUE)
        out: list[str] = []

        if event.is_synthetic:
            if self.verbose:
                self._render_synthetic(out, event)
            return "".join(out)

        if isinstance(event.tool_use_result, dict):
            for handler in RESULT_HANDLERS:
                if handler(out, event.tool_use_result, prefix, cont, self.highlighter):
                    return "".join(out)

        for block in event.content:
            if block.type != "tool_result":
                continue
            text = block.text or extract_text(block.content)
            if block.is_error:
                msg = truncate(clean_content(text), MAX_ERROR_LEN)
                out.append(f"{prefix}{paint(msg, C.RED)}\n")
            elif text:
                self._render_output(out, clean_content(text), context, prefix, cont)
        return "".join(out)

    def _render_output(self, out: list[str], text: str, context: ToolContext,
                       prefix: str, cont: str):
        if not self.verbose:
            summary = f"Read {len(text.split(chr(10)))} lines"
            out.append(f"{prefix}{paint(summary, C.DIM)}\n")
            return
        shown, remaining = truncate_lines(text)
        shown = self.highlighter.highlight(shown, context.file_path)
        pw = PrefixedWriter(out, prefix, cont)
        for line in shown.split("\n"):
            pw.write_line(line)
        if remaining > 0:
            pw.write_line(paint(truncation_indicator(remaining), C.DIM))

    def _render_synthetic(self, out: list[str], event: UserEvent):
        for block in event.content:
            if block.type != "text" or not block.text:
                continue
            cleaned = clean_content(block.text)
            if self.markdown is not None:
                rendered = self.markdown.render(cleaned)
                out.append(rendered if rendered.endswith("\n") else rendered + "\n")
            else:
                shown, _ = truncate_lines(cleaned)
                pw = PrefixedWriter(out, OUTPUT_PREFIX, OUTPUT_CONTINUE)
                for line in shown.split("\n"):
                    pw.write_line(line)
            out.append(f"{OUTPUT_CONTINUE}{paint(f'({len(cleaned.split(chr(10)))} lines)', C.DIM)}\n")

    def render_subagent_prompt(self, event: UserEvent, nested: bool = False) -> str:
        """The prompt a Task hands its sub-agent, cut to a few lines."""
        prefix, cont = (NESTED_OUTPUT_PREFIX, NESTED_OUTPUT_CONTINUE) if nested \
            else (OUTPUT_PREFIX, OUTPUT_CONTINUE)
        out: list[str] = []
        pw = PrefixedWriter(out, prefix, cont)
        for block in event.content:
            if block.type != "text" or not block.text:
                continue
            shown, remaining = truncate_lines(clean_content(block.text), MAX_PROMPT_LINES)
            for line in shown.split("\n"):
                pw.write_line(paint(line, C.DIM))
            if remaining > 0:
                pw.write_line(paint(truncation_indicator(remaining), C.DIM))
        return "".join(out)
