"""Notification sinks that do not need a console."""
import itertools
import logging
from typing import Dict, Optional

from ..protocols import INotificationSink

logger = logging.getLogger(__name__)


class LoggingNotificationSink(INotificationSink):
    """Writes notifications to the log, keeping track of open handles."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger
        self._ids = itertools.count(1)
        self._active: Dict[str, str] = {}

    def _write(self, title: str, description: str, variant: str, level: int = logging.INFO) -> None:
        if variant == "destructive":
            level = logging.ERROR
        self._log.log(level, f"{title}: {description}" if description else title)

    def show(self, title, description="", variant="default", duration=None) -> str:
        handle = f"note-{next(self._ids)}"
        self._active[handle] = title
        self._write(title, description, variant)
        return handle

    def update(self, handle, title, description="", variant="default", duration=None) -> None:
        if handle not in self._active:
            self.show(title, description, variant, duration)
            return
        self._active[handle] = title
        # progress ticks are noisy
        self._write(title, description, variant, logging.DEBUG)

    def dismiss(self, handle) -> None:
        self._active.pop(handle, None)

    @property
    def active(self) -> Dict[str, str]:
        return dict(self._active)


class NullNotificationSink(INotificationSink):
    """Discards every notification."""

    def show(self, title, description="", variant="default", duration=None) -> str:
        return ""

    def update(self, handle, title, description="", variant="default", duration=None) -> None:
        pass

    def dismiss(self, handle) -> None:
        pass
