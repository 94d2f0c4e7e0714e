"""Core data models shared across uibuild components."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


class ModuleFormat(str, Enum):
    """Module system a bundle is serialised to."""

    ESM = "esm"
    CJS = "cjs"


class ExportConvention(str, Enum):
    """How the entry module's exports surface in an emitted bundle."""

    NAMED = "named"
    DEFAULT = "default"
    NONE = "none"


@dataclass(frozen=True)
class ComponentUnit:
    """One independently buildable component, identified by its directory name."""

    name: str
    source_root: Path
    entry_file: Optional[Path] = None

    @property
    def buildable(self) -> bool:
        return self.entry_file is not None


@dataclass(frozen=True)
class OutputTarget:
    """One module-packaging convention of the format matrix."""

    id: str
    format: ModuleFormat
    output_dir: Path
    export_convention: ExportConvention = ExportConvention.NAMED
    bundle_path: str = "../.."
    extension: str = "js"

    def component_path(self, component_name: str) -> Path:
        return self.output_dir / "components" / component_name / f"index.{self.extension}"

    def entry_path(self) -> Path:
        return self.output_dir / "components" / f"index.{self.extension}"

    def entry_bundle_path(self) -> str:
        """``bundle_path`` as seen from the aggregate entry, one level above a component.

        Relative bundle paths are written for ``components/<name>/`` and are
        re-anchored to ``components/``; package paths are returned unchanged.
        """
        base = self.bundle_path.rstrip("/")
        if not base.startswith("."):
            return base
        resolved = posixpath.normpath(posixpath.join("components", "unit", base))
        relative = posixpath.relpath(resolved, "components")
        return relative if relative.startswith(".") else f"./{relative}"

    def declarations_dir(self) -> Path:
        return self.output_dir / "components"


@dataclass(frozen=True)
class EmittedFile:
    """Bytes about to be persisted for one (unit, target) pair."""

    path: Path
    contents: bytes


@dataclass(frozen=True)
class DeclarationUnit:
    """Declaration outputs extracted for a single entry source file."""

    source_file: Path
    emitted_texts: Tuple[Tuple[str, str], ...]

    def rewritten(self, alias_token: str, replacement: str = ".") -> "DeclarationUnit":
        """Return a copy with every alias token replaced by the relative token."""
        if not alias_token:
            return self
        texts = tuple(
            (path, text.replace(alias_token, replacement)) for path, text in self.emitted_texts
        )
        return replace(self, emitted_texts=texts)


__all__ = [
    "ComponentUnit",
    "DeclarationUnit",
    "EmittedFile",
    "ExportConvention",
    "ModuleFormat",
    "OutputTarget",
]
