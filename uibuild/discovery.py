"""Component unit discovery."""

from __future__ import annotations

from pathlib import Path
from typing import List

from .logging import get_logger
from .models import ComponentUnit

logger = get_logger("discovery")


def discover_components(root: Path, source_extension: str = "ts") -> List[ComponentUnit]:
    """Return one unit per immediate subdirectory of ``root``, sorted by name.

    Units whose directory has no ``index.<ext>`` keep ``entry_file=None`` and are
    skipped by the bundler rather than reported as errors.
    """
    if not root.is_dir():
        logger.warning("Components root %s does not exist", root)
        return []

    units: List[ComponentUnit] = []
    for child in sorted(root.iterdir(), key=lambda path: path.name):
        if not child.is_dir() or child.name.startswith("."):
            continue
        entry = child / f"index.{source_extension}"
        units.append(
            ComponentUnit(
                name=child.name,
                source_root=child,
                entry_file=entry if entry.is_file() else None,
            )
        )
    return units


def discover_aggregate_entry(root: Path, source_extension: str = "ts") -> ComponentUnit:
    """Return the unit for ``<root>/index.<ext>``, the aggregate entry of all components."""
    entry = root / f"index.{source_extension}"
    return ComponentUnit(
        name="index",
        source_root=root,
        entry_file=entry if entry.is_file() else None,
    )


def discover_entry_sources(root: Path, source_extension: str = "ts") -> List[Path]:
    """Top-level ``*.<ext>`` files of the entries root; declaration files are skipped."""
    if not root.is_dir():
        logger.warning("Entries root %s does not exist", root)
        return []
    suffix = f".{source_extension}"
    return sorted(
        path
        for path in root.iterdir()
        if path.is_file() and path.name.endswith(suffix) and not path.name.endswith(f".d{suffix}")
    )


__all__ = ["discover_aggregate_entry", "discover_components", "discover_entry_sources"]
