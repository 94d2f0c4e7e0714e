"""Error taxonomy for build runs."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class BuildFailure(RuntimeError):
    """Base class for failures scoped to one unit, target or source file."""

    kind = "build"


class TransformError(Exception):
    """Raised when a module cannot be parsed or transformed."""

    def __init__(
        self,
        path: Path | str,
        message: str,
        *,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> None:
        self.path = str(path)
        self.message = message
        self.line = line
        self.column = column
        super().__init__(self._format())

    def _format(self) -> str:
        location = self.path
        if self.line is not None:
            location = f"{location}:{self.line}"
            if self.column is not None:
                location = f"{location}:{self.column}"
        return f"{location}: {self.message}"


class ResolutionError(TransformError):
    """Raised when a relative import cannot be resolved to a file."""


class BundleError(BuildFailure):
    """Parse, transform or resolution failure for one component unit."""

    kind = "bundle"

    def __init__(self, unit_name: str, diagnostic: str) -> None:
        self.unit_name = unit_name
        self.diagnostic = diagnostic
        super().__init__(f"[{unit_name}] {diagnostic}")


class WriteError(BuildFailure):
    """I/O failure writing one (unit, target) output file."""

    kind = "write"

    def __init__(self, unit_name: str, target_id: str, diagnostic: str) -> None:
        self.unit_name = unit_name
        self.target_id = target_id
        self.diagnostic = diagnostic
        super().__init__(f"[{unit_name} -> {target_id}] {diagnostic}")


class TypeEmitError(BuildFailure):
    """Declaration extraction or write failure for one source file."""

    kind = "types"

    def __init__(self, source_file: Path | str, diagnostic: str) -> None:
        self.source_file = str(source_file)
        self.diagnostic = diagnostic
        super().__init__(f"[{self.source_file}] {diagnostic}")


class DistributeError(BuildFailure):
    """Copying the staging declaration tree into one target failed."""

    kind = "distribute"

    def __init__(self, target_id: str, diagnostic: str) -> None:
        self.target_id = target_id
        self.diagnostic = diagnostic
        super().__init__(f"[{target_id}] {diagnostic}")


class ExternalResolutionError(BuildFailure):
    """The workspace package names could not be listed; fatal to the run."""

    kind = "external"


__all__ = [
    "BuildFailure",
    "BundleError",
    "DistributeError",
    "ExternalResolutionError",
    "ResolutionError",
    "TransformError",
    "TypeEmitError",
    "WriteError",
]
