"""Text cleaning, truncation and prefixed-line helpers."""

from __future__ import annotations

import re

DEFAULT_MAX_LINES = 15

_SYSTEM_REMINDER_RE = re.compile(r"<system-reminder>.*?</system-reminder>\s*", re.DOTALL)
_LINE_NUMBER_RE = re.compile(r"^\s*\d+→", re.MULTILINE)


def truncate(s: str, max_len: int) -> str:
    """Trim and shorten to max_len characters, ending in "..." when cut."""
    s = s.strip()
    if len(s) <= max_len:
        return s
    if max_len <= 3:
        return s[:max_len]
    return s[:max_len - 3] + "..."


def strip_system_reminders(s: str) -> str:
    return _SYSTEM_REMINDER_RE.sub("", s).strip()


def strip_line_numbers(s: str) -> str:
    """Drop the "     1→" prefixes Read results carry."""
    return _LINE_NUMBER_RE.sub("", s)


def clean_content(s: str) -> str:
    return strip_line_numbers(strip_system_reminders(s))


def truncate_lines(content: str, max_lines: int = DEFAULT_MAX_LINES) -> tuple[str, int]:
    """Keep the first max_lines lines. Returns (text, number of lines cut)."""
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines = lines[:-1]
    if len(lines) <= max_lines:
        return content, 0
    return "\n".join(lines[:max_lines]), len(lines) - max_lines


def truncation_indicator(remaining: int) -> str:
    return f"… ({remaining} more lines)"


def wrap_text(s: str, max_width: int, max_lines: int = 3) -> str:
    """Word-wrap to max_width, at most max_lines lines ("..." when cut)."""
    if len(s) <= max_width:
        return s
    lines: list[str] = []
    current = ""
    for word in s.split():
        if len(word) > max_width:
            word = word[:max_width - 3] + "..."
        if current and len(current) + 1 + len(word) > max_width:
            lines.append(current)
            current = word
        else:
            current = f"{current} {word}" if current else word
    if current:
        lines.append(current)
    if len(lines) > max_lines:
        lines = lines[:max_lines]
        lines[-1] += "..."
    return "\n".join(lines)


def extract_text(raw) -> str:
    """Tool result content is a string or a list of {"type": "text"} blocks."""
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, list):
        parts = []
        for block in raw:
            if isinstance(block, dict) and block.get("type") == "text" and block.get("text"):
                parts.append(block["text"])
        return "\n".join(parts)
    return str(raw)


class PrefixedWriter:
    """First line gets `first_prefix`, every later line `continue_prefix`."""

    def __init__(self, out: list[str], first_prefix: str, continue_prefix: str):
        self.out = out
        self.first_prefix = first_prefix
        self.continue_prefix = continue_prefix
        self.first = True

    def prefix(self) -> str:
        if self.first:
            self.first = False
            return self.first_prefix
        return self.continue_prefix

    def write_line(self, line: str):
        self.out.append(f"{self.prefix()}{line}\n")
