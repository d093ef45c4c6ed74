"""Line mode: read NDJSON, print each rendered event as it arrives."""

from __future__ import annotations

import sys
from typing import Callable, Iterable, Optional

from viewscreen.events import ParseError, parse_line
from viewscreen.processor import EventProcessor
from viewscreen.renderers import RendererSet
from viewscreen.state import SessionState, config
from viewscreen.ui import MarkdownRenderer, StreamingIndicator, dbg, dbg_block, error


def _stdout_writer(text: str):
    sys.stdout.write(text)
    sys.stdout.flush()


class StreamParser:
    """
    Single-threaded read → parse → process → write loop.

    Bad lines are reported on stderr and skipped; anything raised by the
    `write` callback propagates to the caller and stops the loop.
    """

    def __init__(
        self,
        write: Optional[Callable[[str], None]] = None,
        state: Optional[SessionState] = None,
        processor: Optional[EventProcessor] = None,
    ):
        self.write = write or _stdout_writer
        self.state = state or SessionState()
        if processor is None:
            renderers = RendererSet(
                markdown=MarkdownRenderer(config.width),
                indicator=StreamingIndicator(sys.stdout),
            )
            processor = EventProcessor(self.state, renderers)
        self.processor = processor
        self.line_count = 0
        self.error_count = 0

    def feed_line(self, raw_line: str):
        self.line_count += 1
        event = parse_line(raw_line)
        if event is None:
            return
        if isinstance(event, ParseError):
            self.error_count += 1
            error(event.message)
            dbg_block(f"line {self.line_count}", event.line)
            return

        result = self.processor.process(event)
        if result.rendered:
            self.write(result.rendered)

    def run(self, lines: Iterable[str]) -> SessionState:
        indicator = self.processor.renderers.indicator
        try:
            for line in lines:
                self.feed_line(line)
        finally:
            if indicator is not None:
                indicator.clear()
        dbg(f"{self.line_count} lines, {self.error_count} unparsable")
        return self.state
