"""viewscreen: live viewer for a coding agent's stream-json output."""

__version__ = "0.1.0"
