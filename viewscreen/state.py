"""Global configuration and session state."""

from __future__ import annotations

import json
import os
import tempfile

BASE_DIR = os.path.join(os.path.expanduser("~"), ".viewscreen")
CONFIG_FILE = os.path.join(BASE_DIR, "config.json")


class Config:
    verbose: bool = False
    no_color: bool = False
    show_usage: bool = True
    no_tui: bool = False
    debug: bool = False
    width: int = 100                 # markdown wrap width; 0 = terminal width


config = Config()

# Keys honoured from ~/.viewscreen/config.json
_PERSISTED_KEYS = ("verbose", "no_color", "show_usage", "no_tui", "width")


def load_user_config(path: str = CONFIG_FILE) -> dict:
    """Load user config from ~/.viewscreen/config.json."""
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def save_user_config(data: dict, path: str = CONFIG_FILE):
    """Merge `data` into the user config file (atomic write)."""
    directory = os.path.dirname(path)
    os.makedirs(directory, exist_ok=True)
    merged = load_user_config(path)
    merged.update(data)
    fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(merged, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def apply_user_config(path: str = CONFIG_FILE) -> dict:
    """Copy persisted settings onto `config`. Returns the keys applied."""
    applied = {}
    for key, value in load_user_config(path).items():
        if key not in _PERSISTED_KEYS:
            continue
        expected = type(getattr(Config, key))
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            continue
        setattr(config, key, value)
        applied[key] = value
    return applied


def _text(d: dict, key: str) -> str:
    value = d.get(key)
    return value if isinstance(value, str) else ""


def _count(d: dict, key: str) -> int:
    value = d.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


class Todo:
    __slots__ = ("content", "status", "active_form")

    def __init__(self, content: str, status: str = "pending", active_form: str = ""):
        self.content = content
        self.status = status
        self.active_form = active_form

    def __repr__(self):
        return f"Todo({self.content!r}, {self.status!r})"


class SessionState:
    """Session facts extracted from events, shown in the sidebar and summary."""

    def __init__(self):
        self.reset()

    def reset(self):
        # From the system event
        self.model: str = ""
        self.version: str = ""
        self.cwd: str = ""
        self.tools_count: int = 0
        self.agents: list[str] = []
        self.permission_mode: str = ""

        # Runtime tracking
        self.turn_count: int = 0
        self.total_cost_usd: float = 0.0
        self.todos: list[Todo] = []

        # Tool currently executing (sidebar spinner)
        self.current_tool: str = ""
        self.current_tool_input: str = ""
        self.tool_in_progress: bool = False

        # Usage, from the result event
        self.input_tokens: int = 0
        self.output_tokens: int = 0
        self.cache_created: int = 0
        self.cache_read: int = 0

        # Session status
        self.finished: bool = False
        self.is_error: bool = False
        self.duration_ms: int = 0
        self.duration_api_ms: int = 0

    def update_from_system_event(self, event):
        self.model = event.model
        self.version = event.claude_code_version
        self.cwd = event.cwd
        self.tools_count = len(event.tools)
        self.agents = list(event.agents)
        self.permission_mode = event.permission_mode

    def increment_turn_count(self):
        self.turn_count += 1

    def set_current_tool(self, name: str, tool_input: str = ""):
        self.current_tool = name
        self.current_tool_input = tool_input
        self.tool_in_progress = True

    def clear_current_tool(self):
        self.current_tool = ""
        self.current_tool_input = ""
        self.tool_in_progress = False

    def update_from_tool_use_result(self, tool_use_result):
        """A result arrived: nothing is running any more; pick up todo lists."""
        self.clear_current_tool()
        if not isinstance(tool_use_result, dict):
            return
        new_todos = tool_use_result.get("newTodos")
        if not isinstance(new_todos, list) or not new_todos:
            return
        self.todos = [
            Todo(
                content=_text(t, "content"),
                status=t.get("status", "pending"),
                active_form=_text(t, "activeForm"),
            )
            for t in new_todos
            if isinstance(t, dict) and isinstance(t.get("status", "pending"), str)
        ]

    def update_from_result_event(self, event):
        self.finished = True
        self.turn_count = event.num_turns
        self.total_cost_usd = event.total_cost_usd
        self.is_error = event.is_error
        self.duration_ms = event.duration_ms
        self.duration_api_ms = event.duration_api_ms
        self.input_tokens = _count(event.usage, "input_tokens")
        self.output_tokens = _count(event.usage, "output_tokens")
        self.cache_created = _count(event.usage, "cache_creation_input_tokens")
        self.cache_read = _count(event.usage, "cache_read_input_tokens")

    def active_todo(self) -> Todo | None:
        for todo in self.todos:
            if todo.status == "in_progress":
                return todo
        return None
