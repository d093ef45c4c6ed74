"""ANSI colors, output helpers, markdown rendering, streaming indicator."""

from __future__ import annotations

import io
import shutil
import sys
import threading
from typing import Callable, Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.padding import Padding
from rich.theme import Theme

from viewscreen.state import config


# ── Rich console ────────────────────────────────────────────────────────────

_theme = Theme({
    "markdown.heading": "bold cyan",
    "markdown.code": "bold magenta",
    "markdown.link": "blue underline",
})
console = Console(theme=_theme, highlight=False)


def terminal_width(default: int = 80) -> int:
    try:
        return shutil.get_terminal_size((default, 24)).columns
    except (OSError, ValueError):
        return default


class MarkdownRenderer:
    """Render markdown text to a string (captured, never printed)."""

    def __init__(self, width: int = 0, no_color: bool | None = None):
        self.width = width or terminal_width()
        self.no_color = config.no_color if no_color is None else no_color

    def set_width(self, width: int):
        if width > 0:
            self.width = width

    def render(self, text: str) -> str:
        buf = io.StringIO()
        capture = Console(
            file=buf,
            theme=_theme,
            width=min(self.width, 100),
            force_terminal=not self.no_color,
            no_color=self.no_color,
            color_system=None if self.no_color else "truecolor",
            highlight=False,
        )
        capture.print(Padding(Markdown(text), (0, 0, 0, 2)))
        return buf.getvalue()


# ── ANSI Colors ─────────────────────────────────────────────────────────────

class C:
    CYAN    = "\033[1;36m"
    DIM     = "\033[2m"
    YELLOW  = "\033[1;33m"
    GREEN   = "\033[1;32m"
    RED     = "\033[1;31m"
    BOLD    = "\033[1m"
    BLUE    = "\033[1;34m"
    MAGENTA = "\033[1;35m"
    UNDERLINE_DOTTED = "\033[4:4m"
    RESET   = "\033[0m"


_COLOR_CODES = {k: v for k, v in vars(C).items() if k.isupper()}


def set_color(enabled: bool):
    """Enable or blank every code in C. Call before rendering anything."""
    for name, code in _COLOR_CODES.items():
        setattr(C, name, code if enabled else "")


def paint(text: str, *codes: str) -> str:
    if not text:
        return text
    prefix = "".join(codes)
    if not prefix:
        return text
    return f"{prefix}{text}{C.RESET}"


# ── Layout glyphs ───────────────────────────────────────────────────────────

BULLET = "● "
OUTPUT_PREFIX = "  ⎿  "
OUTPUT_CONTINUE = "     "
NESTED_PREFIX = "  │ "
NESTED_OUTPUT_PREFIX = "  │   ⎿  "
NESTED_OUTPUT_CONTINUE = "  │      "


# ── Output helpers ──────────────────────────────────────────────────────────

def dim(msg: str):
    print(f"  {C.DIM}{msg}{C.RESET}", flush=True)


def error(msg: str):
    print(f"  {C.RED}[Error] {msg}{C.RESET}", file=sys.stderr, flush=True)


# Replaces stderr for debug output while a full-screen view owns the terminal
_debug_sink: Optional[Callable[[str], None]] = None


def set_debug_sink(sink: Optional[Callable[[str], None]]):
    global _debug_sink
    _debug_sink = sink


def _debug_out(line: str):
    if _debug_sink is not None:
        _debug_sink(line)
    else:
        print(line, file=sys.stderr, flush=True)


def dbg(msg: str):
    if config.debug:
        _debug_out(f"{C.YELLOW}[DEBUG] {msg}{C.RESET}")


def dbg_block(label: str, content: str):
    if config.debug:
        preview = content[:500] + ("..." if len(content) > 500 else "")
        _debug_out(f"{C.YELLOW}── {label} ──{C.RESET}")
        _debug_out(f"{C.DIM}{preview}{C.RESET}")


# ── Streaming indicator ─────────────────────────────────────────────────────

SPINNER = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"


class StreamingIndicator:
    """Animated spinner shown while text deltas stream in (line mode)."""

    def __init__(self, stream=None, enabled: bool | None = None):
        self.stream = stream or sys.stdout
        if enabled is None:
            enabled = bool(getattr(self.stream, "isatty", lambda: False)())
        self.enabled = enabled
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def visible(self) -> bool:
        return self._thread is not None

    def show(self):
        if not self.enabled:
            return
        with self._lock:
            if self._thread is not None:
                return
            self._stop.clear()
            self._thread = threading.Thread(target=self._run, daemon=True)
            self._thread.start()

    def clear(self):
        with self._lock:
            if self._thread is None:
                return
            self._stop.set()
            self._thread.join(timeout=1)
            self._thread = None
        self.stream.write("\r\033[2K")
        self.stream.flush()

    def _run(self):
        idx = 0
        while not self._stop.is_set():
            ch = SPINNER[idx % len(SPINNER)]
            self.stream.write(f"\r{C.MAGENTA}{ch}{C.RESET}\033[K")
            self.stream.flush()
            idx += 1
            self._stop.wait(0.08)
