"""External import classification."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from .errors import ExternalResolutionError


class ExternalMode(str, Enum):
    """Externalisation policy for a bundling call."""

    FULL = "full"
    COMPONENT = "component"


@dataclass(frozen=True)
class ExternalPredicate:
    """Decides whether an import specifier is left unresolved in a bundle."""

    full: bool
    packages: frozenset[str] = frozenset()

    def __call__(self, specifier: str) -> bool:
        if self.full:
            return True
        return any(
            specifier == package or specifier.startswith(f"{package}/")
            for package in self.packages
        )


def make_external_predicate(
    mode: ExternalMode,
    internal_packages: Iterable[str],
    peer_dependencies: Iterable[str] = (),
    manifest_dependencies: Iterable[str] = (),
) -> ExternalPredicate:
    """Build the predicate once per run; every bundling call shares it."""
    if mode is ExternalMode.FULL:
        return ExternalPredicate(full=True)
    packages = frozenset(
        name
        for name in (*internal_packages, *peer_dependencies, *manifest_dependencies)
        if name
    )
    return ExternalPredicate(full=False, packages=packages)


def load_manifest_dependencies(manifest: Optional[Path]) -> frozenset[str]:
    """Return ``dependencies`` and ``peerDependencies`` names of a package.json."""
    if manifest is None:
        return frozenset()
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ExternalResolutionError(f"Failed to read package manifest {manifest}: {exc}") from exc
    names = set()
    for key in ("dependencies", "peerDependencies"):
        section = data.get(key) if isinstance(data, dict) else None
        if isinstance(section, dict):
            names.update(str(name) for name in section)
    return frozenset(names)


__all__ = [
    "ExternalMode",
    "ExternalPredicate",
    "load_manifest_dependencies",
    "make_external_predicate",
]
