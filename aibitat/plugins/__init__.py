"""Plugins hooking into engine events."""

from .base import Plugin
from .file_history import FileHistoryPlugin, default_history_path, load_history
from .retry import RetryPlugin
from .terminal import TerminalPlugin
from .web_browsing import WebBrowsingPlugin

__all__ = [
    "Plugin",
    "FileHistoryPlugin",
    "RetryPlugin",
    "TerminalPlugin",
    "WebBrowsingPlugin",
    "default_history_path",
    "load_history",
]
