"""
Live reload pipeline: file watcher and WebSocket change notifier.
"""

from liver.reload.notifier import ChangeNotifier
from liver.reload.watcher import FileWatcher

__all__ = ["ChangeNotifier", "FileWatcher"]
