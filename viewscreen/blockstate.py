"""Assemble one streamed content block out of delta fragments."""

from __future__ import annotations

import enum
import json


class BlockType(enum.Enum):
    NONE = "none"
    TEXT = "text"
    TOOL_USE = "tool_use"

    def __str__(self):
        return self.value


class BlockState:
    """
    Tracks the single in-flight content block of a streaming message.

    Lifecycle per block:
        start_block(i, {...})  → type/index set, buffers cleared
        accumulate_*(delta)    → append-only while the matching type is open
        stop_block(i)          → reports the closed type; buffers stay readable
        reset() / reset_message()

    Stopping deliberately keeps the type and buffers: the assistant message
    that follows the stream still needs to know what was just streamed, so
    it is not rendered twice. Call reset() once that message is handled.
    """

    def __init__(self):
        self._type = BlockType.NONE
        self._index = -1
        self._tool_name = ""
        self._text_parts: list[str] = []
        self._tool_parts: list[str] = []

    # ── Accessors ──

    @property
    def type(self) -> BlockType:
        return self._type

    @property
    def index(self) -> int:
        return self._index

    @property
    def tool_name(self) -> str:
        return self._tool_name

    @property
    def in_text_block(self) -> bool:
        return self._type is BlockType.TEXT

    @property
    def in_tool_use_block(self) -> bool:
        return self._type is BlockType.TOOL_USE

    @property
    def text_content(self) -> str:
        return "".join(self._text_parts)

    @property
    def tool_input(self) -> str:
        return "".join(self._tool_parts)

    # ── Transitions ──

    def start_block(self, index: int, content_block) -> bool:
        """Begin a new block. Returns False for empty/invalid/unknown blocks."""
        self._index = index
        self._type = BlockType.NONE
        self._tool_name = ""
        self._text_parts.clear()
        self._tool_parts.clear()

        if not content_block:
            return False
        if isinstance(content_block, (str, bytes)):
            try:
                content_block = json.loads(content_block)
            except (json.JSONDecodeError, UnicodeDecodeError):
                return False
        if not isinstance(content_block, dict):
            return False

        btype = content_block.get("type")
        if btype == "text":
            self._type = BlockType.TEXT
            return True
        if btype == "tool_use":
            self._type = BlockType.TOOL_USE
            name = content_block.get("name")
            self._tool_name = name if isinstance(name, str) else ""
            return True
        # thinking, server_tool_use, ... are not rendered
        return False

    def accumulate_text(self, text: str) -> bool:
        if self._type is not BlockType.TEXT:
            return False
        self._text_parts.append(text)
        return True

    def accumulate_tool_input(self, partial_json: str) -> bool:
        if self._type is not BlockType.TOOL_USE:
            return False
        self._tool_parts.append(partial_json)
        return True

    def stop_block(self, index: int) -> BlockType:
        if index != self._index:
            return BlockType.NONE
        return self._type

    def reset(self):
        """Full clear, once the enclosing assistant message is processed."""
        self._type = BlockType.NONE
        self._index = -1
        self._tool_name = ""
        self._text_parts.clear()
        self._tool_parts.clear()

    def reset_message(self):
        """message_stop: forget the index, keep type/buffers for post-processing."""
        self._index = -1

    def parse_tool_input(self) -> dict | None:
        """Parse the accumulated tool input. None when empty or not a JSON object."""
        raw = self.tool_input
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return None
        return data if isinstance(data, dict) else None
