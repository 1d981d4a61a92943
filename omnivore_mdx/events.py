"""Explicit channel for process logs and progress updates."""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from .models import ProcessLog, ProgressStatus

logger = logging.getLogger("omnivore_mdx")

LogSink = Callable[[ProcessLog], None]
ProgressCallback = Callable[[ProgressStatus], None]
ImageProgressCallback = Callable[[float, str], None]

_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class EventEmitter:
    """Forward log entries and progress to caller-supplied callbacks.

    Every entry is also written to the ``omnivore_mdx`` logger, so a caller
    that passes no callbacks still gets regular logging output.
    """

    def __init__(
        self,
        sink: Optional[LogSink] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_image_progress: Optional[ImageProgressCallback] = None,
    ) -> None:
        self.sink = sink
        self.on_progress = on_progress
        self.on_image_progress = on_image_progress

    @classmethod
    def collect(cls, entries: List[ProcessLog], **kwargs) -> "EventEmitter":
        """Build an emitter whose sink appends to ``entries``."""
        return cls(sink=entries.append, **kwargs)

    def log(self, severity: str, message: str) -> None:
        logger.log(_LEVELS[severity], "%s", message)
        if self.sink is not None:
            self.sink(ProcessLog(time.time(), severity, message))

    def info(self, message: str) -> None:
        self.log("info", message)

    def warning(self, message: str) -> None:
        self.log("warning", message)

    def error(self, message: str) -> None:
        self.log("error", message)

    def progress(
        self,
        status: ProgressStatus,
        callback: Optional[ProgressCallback] = None,
    ) -> None:
        """Report ``status`` to ``callback`` or, failing that, the default."""
        target = callback or self.on_progress
        if target is not None:
            target(status)

    def image_progress(self, fraction: float, url: str) -> None:
        if self.on_image_progress is not None:
            self.on_image_progress(fraction, url)
