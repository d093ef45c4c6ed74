"""Interactive dashboard: scrollback on the left, session sidebar on the right.

Producers (stdin reader, /dev/tty key reader) only put messages on a queue.
The loop in :meth:`Dashboard.run` is the single consumer and the only code
that touches the processor and session state.
"""

from __future__ import annotations

import os
import queue
import select
import sys
import termios
import threading
import tty
from dataclasses import dataclass
from typing import Iterable, Optional

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from viewscreen.events import ParseError, parse_line
from viewscreen.processor import EventProcessor
from viewscreen.renderers import RendererSet
from viewscreen.state import SessionState, config
from viewscreen.textutil import truncate, wrap_text
from viewscreen.tokens import fmt_tokens
from viewscreen.ui import SPINNER, MarkdownRenderer, console as default_console, dbg, set_debug_sink

SIDEBAR_WIDTH = 30
TICK_SECS = 0.1


# ── Messages ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RawLineMsg:
    line: str


@dataclass(frozen=True)
class StdinClosedMsg:
    pass


@dataclass(frozen=True)
class KeyMsg:
    key: str


@dataclass(frozen=True)
class TickMsg:
    pass


@dataclass(frozen=True)
class DebugMsg:
    text: str


# ── Producers ───────────────────────────────────────────────────────────────

def read_lines(source: Iterable[str], q: queue.Queue):
    """Reader thread body: one RawLineMsg per line, StdinClosedMsg at EOF."""
    try:
        for line in source:
            q.put(RawLineMsg(line))
    except (OSError, ValueError) as e:
        dbg(f"input reader stopped: {e}")
    finally:
        q.put(StdinClosedMsg())


_ESCAPES = {
    b"[A": "up",
    b"[B": "down",
    b"[5~": "pgup",
    b"[6~": "pgdown",
    b"[H": "home",
    b"[1~": "home",
    b"[F": "end",
    b"[4~": "end",
}


class KeyReader:
    """
    Reads keys from the controlling terminal in cbreak mode.

    stdin carries the event stream, so keys come from /dev/tty instead.
    Disabled (a no-op) when there is no terminal to open.
    """

    def __init__(self, q: queue.Queue, enabled: bool = True, path: str = "/dev/tty"):
        self.q = q
        self.enabled = enabled
        self.path = path
        self.fd: Optional[int] = None
        self._old = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __enter__(self):
        if not self.enabled:
            return self
        try:
            self.fd = os.open(self.path, os.O_RDONLY)
            self._old = termios.tcgetattr(self.fd)
            tty.setcbreak(self.fd)
        except (OSError, termios.error) as e:
            dbg(f"no key input: {e}")
            self._close()
            return self
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=0.5)
        self._close()

    def _close(self):
        if self.fd is None:
            return
        if self._old is not None:
            termios.tcsetattr(self.fd, termios.TCSADRAIN, self._old)
        os.close(self.fd)
        self.fd = None

    def _run(self):
        while not self._stop.is_set():
            try:
                ready, _, _ = select.select([self.fd], [], [], 0.15)
                if not ready:
                    continue
                data = os.read(self.fd, 16)
            except (OSError, ValueError):
                return
            if data:
                self.q.put(KeyMsg(decode_key(data)))


def decode_key(data: bytes) -> str:
    if data == b"\x03":
        return "ctrl+c"
    if data.startswith(b"\x1b"):
        return _ESCAPES.get(data[1:], "esc")
    return data.decode("utf-8", errors="ignore")


# ── Dashboard ───────────────────────────────────────────────────────────────

class Dashboard:
    def __init__(
        self,
        processor: Optional[EventProcessor] = None,
        state: Optional[SessionState] = None,
        console: Optional[Console] = None,
    ):
        self.state = state or SessionState()
        self.console = console or default_console
        if processor is None:
            width = max(self.console.width - SIDEBAR_WIDTH - 4, 20)
            processor = EventProcessor(self.state, RendererSet(markdown=MarkdownRenderer(width)))
        self.processor = processor
        self.queue: queue.Queue = queue.Queue()

        self.content: list[str] = []
        self.offset = 0           # first visible line when not following
        self.follow = True        # pinned to the bottom
        self.stdin_done = False
        self.running = True
        self.frame = 0

    # ── Update ──

    def handle(self, msg):
        if isinstance(msg, RawLineMsg):
            self._handle_line(msg.line)
        elif isinstance(msg, StdinClosedMsg):
            # Keep the session on screen until the user quits
            self.stdin_done = True
        elif isinstance(msg, KeyMsg):
            self._handle_key(msg.key)
        elif isinstance(msg, TickMsg):
            self.frame += 1
        elif isinstance(msg, DebugMsg):
            self.content.append(msg.text + "\n")

    def _handle_line(self, line: str):
        event = parse_line(line)
        if event is None:
            return
        if isinstance(event, ParseError):
            if config.verbose:
                self.content.append(f"Parse error: {event.line}\n")
            dbg(event.message)
            return
        result = self.processor.process(event)
        if result.rendered:
            self.content.append(result.rendered)

    def _handle_key(self, key: str):
        page = max(self.viewport_height() // 2, 1)
        if key in ("q", "ctrl+c"):
            self.running = False
        elif key in ("up", "k"):
            self.scroll(-1)
        elif key in ("down", "j"):
            self.scroll(1)
        elif key == "pgup":
            self.scroll(-page)
        elif key == "pgdown":
            self.scroll(page)
        elif key in ("home", "g"):
            self.follow = False
            self.offset = 0
        elif key in ("end", "G"):
            self.follow = True

    def scroll(self, delta: int):
        bottom = self.max_offset()
        start = bottom if self.follow else self.offset
        self.offset = min(max(start + delta, 0), bottom)
        self.follow = self.offset >= bottom

    def step(self, timeout: float = TICK_SECS):
        """Consume one message; an idle queue becomes a tick."""
        try:
            msg = self.queue.get(timeout=timeout)
        except queue.Empty:
            msg = TickMsg()
        self.handle(msg)

    # ── View ──

    def viewport_height(self) -> int:
        return max(self.console.height - 2, 1)

    def lines(self) -> list[str]:
        text = "".join(self.content)
        icon = SPINNER[self.frame % len(SPINNER)]
        for _, pending in self.processor.pending_tools():
            text += self.processor.render_pending_tool(pending, icon)
        return text.rstrip("\n").split("\n") if text else []

    def max_offset(self) -> int:
        return max(len(self.lines()) - self.viewport_height(), 0)

    def visible_lines(self) -> list[str]:
        lines = self.lines()
        height = self.viewport_height()
        start = max(len(lines) - height, 0) if self.follow else min(self.offset, max(len(lines) - height, 0))
        return lines[start:start + height]

    def render_sidebar(self) -> Panel:
        s = self.state
        txt = Text()
        inner = SIDEBAR_WIDTH - 6

        def field(label: str, value: str):
            txt.append(f"{label}\n", style="bold")
            txt.append(f"{value}\n\n", style="dim")

        field("Model", wrap_text(s.model or "-", inner, max_lines=2))
        field("Turns", str(s.turn_count))
        field("Cost", f"${s.total_cost_usd:.4f}")
        if s.input_tokens or s.output_tokens:
            field("Tokens", f"{fmt_tokens(s.input_tokens)} in / {fmt_tokens(s.output_tokens)} out")

        if s.current_tool:
            tool_text = s.current_tool
            if s.current_tool_input and len(s.current_tool_input) < 20:
                tool_text += " " + s.current_tool_input
            txt.append("Running\n", style="bold")
            txt.append(SPINNER[self.frame % len(SPINNER)] + " ", style="magenta")
            txt.append(truncate(tool_text, inner) + "\n\n", style="yellow")

        if s.todos:
            txt.append("Todos\n", style="bold")
            for todo in s.todos:
                if todo.status == "completed":
                    txt.append("✓ ", style="green")
                    txt.append(truncate(todo.content or todo.active_form, inner) + "\n", style="dim")
                elif todo.status == "in_progress":
                    txt.append(SPINNER[self.frame % len(SPINNER)] + " ", style="magenta")
                    txt.append(truncate(todo.active_form or todo.content, inner) + "\n")
                else:
                    txt.append("○ " + truncate(todo.content or todo.active_form, inner) + "\n", style="dim")
            txt.append("\n")

        if s.finished:
            txt.append("Session error\n" if s.is_error else "Session complete\n",
                       style="red" if s.is_error else "green")
        if self.stdin_done:
            txt.append("input closed, q to quit\n", style="dim italic")
        return Panel(txt, title="[bold]viewscreen[/]", border_style="bright_blue")

    def render_content(self) -> Panel:
        body = Text.from_ansi("\n".join(self.visible_lines()))
        if not self.content and not self.processor.has_pending_tools():
            body = Text("  waiting for events ...", style="dim italic")
        return Panel(body, border_style="bright_black")

    def render(self) -> Layout:
        root = Layout(name="root")
        root.split_row(
            Layout(self.render_content(), name="main", ratio=1),
            Layout(self.render_sidebar(), name="sidebar", size=SIDEBAR_WIDTH),
        )
        return root

    # ── Loop ──

    def run(self, source: Iterable[str], keys: bool = True) -> SessionState:
        # Debug lines go to the scrollback while Live owns the screen
        set_debug_sink(lambda line: self.queue.put(DebugMsg(line)))
        reader = threading.Thread(target=read_lines, args=(source, self.queue), daemon=True)
        reader.start()
        live = Live(self.render(), console=self.console, screen=True, auto_refresh=False)
        try:
            with KeyReader(self.queue, enabled=keys), live:
                while self.running:
                    self.step()
                    live.update(self.render(), refresh=True)
        except KeyboardInterrupt:
            pass
        finally:
            set_debug_sink(None)
        return self.state


def run_dashboard(source: Optional[Iterable[str]] = None) -> SessionState:
    default_console.no_color = config.no_color
    return Dashboard().run(source if source is not None else sys.stdin)
