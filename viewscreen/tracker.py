"""Pair tool invocations with their results across events.

An assistant message announces a tool_use block; its tool_result arrives in a
later user message. Between the two the invocation is *pending*. Sub-agent
tools carry the id of the Task invocation that spawned them, and count as
nested only while that parent is itself still pending.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from viewscreen.events import ContentBlock, ToolResultBlock


@dataclass(frozen=True)
class PendingTool:
    block: ContentBlock
    parent_tool_use_id: Optional[str] = None


@dataclass(frozen=True)
class ResolvedTool:
    """A tool ready to have its header rendered."""

    block: ContentBlock
    is_nested: bool = False


@dataclass(frozen=True)
class MatchedTool(ResolvedTool):
    """A pending tool whose result arrived."""

    header_rendered: bool = False


@dataclass(frozen=True)
class OrphanedTool(ResolvedTool):
    """A pending tool still waiting when the session ended."""

    header_rendered: bool = False


class ToolUseTracker:
    """Registry of pending tool invocations for one session."""

    def __init__(self):
        self._pending: dict[str, PendingTool] = {}
        self._header_rendered: set[str] = set()

    # ── Primitives ──

    def add(self, tool_id: str, block: ContentBlock, parent_tool_use_id: Optional[str] = None):
        self._pending[tool_id] = PendingTool(block, parent_tool_use_id or None)

    def get(self, tool_id: str) -> Optional[PendingTool]:
        return self._pending.get(tool_id)

    def remove(self, tool_id: str):
        self._pending.pop(tool_id, None)
        self._header_rendered.discard(tool_id)

    def is_parent_pending(self, parent_id: str) -> bool:
        return parent_id in self._pending

    def is_nested(self, pending: PendingTool) -> bool:
        return pending.parent_tool_use_id is not None and self.is_parent_pending(pending.parent_tool_use_id)

    def header_rendered(self, tool_id: str) -> bool:
        return tool_id in self._header_rendered

    def items(self) -> Iterator[tuple[str, PendingTool]]:
        """Pending tools in the order they were added."""
        return iter(list(self._pending.items()))

    def clear(self):
        self._pending.clear()
        self._header_rendered.clear()

    def __len__(self):
        return len(self._pending)

    def __contains__(self, tool_id):
        return tool_id in self._pending

    # ── Lifecycle ──

    def match_and_remove(self, tool_ids: Iterable[str]) -> list[MatchedTool]:
        """Remove each pending id and return it; unknown ids are skipped."""
        matched = []
        for tool_id in tool_ids:
            pending = self._pending.get(tool_id)
            if pending is None:
                continue
            # Nesting is decided before removal, while the parent may still be pending.
            is_nested = self.is_nested(pending)
            rendered = tool_id in self._header_rendered
            self.remove(tool_id)
            matched.append(MatchedTool(pending.block, is_nested, header_rendered=rendered))
        return matched

    def flush_all(self) -> list[OrphanedTool]:
        """Drain every pending tool as orphaned and empty the tracker."""
        orphaned = [
            OrphanedTool(
                pending.block,
                self.is_nested(pending),
                header_rendered=tool_id in self._header_rendered,
            )
            for tool_id, pending in self._pending.items()
        ]
        self.clear()
        return orphaned

    def resolve_parent_early(self, parent_id: str) -> Optional[ResolvedTool]:
        """
        Hand out a pending parent's header before its result arrives.

        A sub-agent's prompt is shown nested under the Task that launched it,
        so the Task header must be printed first. Returns None when the parent
        is unknown or its header was already handed out.
        """
        pending = self._pending.get(parent_id)
        if pending is None or parent_id in self._header_rendered:
            return None
        self._header_rendered.add(parent_id)
        return ResolvedTool(pending.block, self.is_nested(pending))

    def buffer_from_assistant_message(
        self,
        content: Iterable[ContentBlock],
        parent_tool_use_id: Optional[str],
        currently_streaming: bool,
    ) -> bool:
        """
        Track the tool_use blocks of an assistant message.

        While a tool_use block is being streamed live its header is rendered
        by the stream path, so nothing is buffered here. This assumes at most
        one live tool stream at a time. Returns True if any tool was added.
        """
        buffered = False
        for block in content:
            if block.type != "tool_use" or not block.id:
                continue
            if currently_streaming:
                continue
            self.add(block.id, block, parent_tool_use_id)
            buffered = True
        return buffered

    def match_from_user_message(self, content: Iterable[ToolResultBlock]) -> list[MatchedTool]:
        ids = [c.tool_use_id for c in content if c.type == "tool_result" and c.tool_use_id]
        return self.match_and_remove(ids)
