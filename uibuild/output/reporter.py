"""Size reporting for emitted bundle files."""

from __future__ import annotations

import gzip as gzip_module
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..logging import Sink, logger_sink
from ..models import EmittedFile


@dataclass(frozen=True)
class SizeObservation:
    path: Path
    raw: int
    gzip: Optional[int] = None


def format_size(size: int) -> str:
    """Render a byte count the way size reports print it (``512 B``, ``1.50 KiB``)."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in ("KiB", "MiB", "GiB"):
        value /= 1024
        if value < 1024 or unit == "GiB":
            break
    return f"{value:.2f} {unit}"


class SizeReporter:
    """Observes emitted files and reports their raw and gzip sizes.

    The reporter only reads ``EmittedFile.contents``; it never alters the bytes that
    the writer persists afterwards.
    """

    def __init__(self, sink: Sink | None = None, *, gzip: bool = True) -> None:
        self.gzip = gzip
        self._sink = sink or logger_sink("size")

    def observe(self, emitted: EmittedFile) -> SizeObservation:
        raw = len(emitted.contents)
        compressed = len(gzip_module.compress(emitted.contents, mtime=0)) if self.gzip else None
        observation = SizeObservation(path=emitted.path, raw=raw, gzip=compressed)
        self._sink(logging.INFO, self.describe(observation))
        return observation

    @staticmethod
    def describe(observation: SizeObservation) -> str:
        message = f"{observation.path}: {format_size(observation.raw)}"
        if observation.gzip is not None:
            message = f"{message} (gzip {format_size(observation.gzip)})"
        return message


__all__ = ["SizeObservation", "SizeReporter", "Sink", "format_size"]
