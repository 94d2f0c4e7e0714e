"""Workspace package listing (pnpm-workspace.yaml / package.json workspaces)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Set

import yaml

from .errors import ExternalResolutionError
from .logging import get_logger

_PNPM_WORKSPACE = "pnpm-workspace.yaml"
_PACKAGE_JSON = "package.json"
_EXCLUDED_DIRS = {"node_modules", ".git"}


class WorkspaceResolver:
    """Lists the names of packages published from this workspace."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.logger = get_logger("workspace")

    def list_internal_package_names(self) -> frozenset[str]:
        """Return every package name in the workspace, including the root package."""
        root_manifest = self.root / _PACKAGE_JSON
        patterns = self._workspace_patterns()
        if patterns is None and not root_manifest.is_file():
            raise ExternalResolutionError(
                f"No {_PNPM_WORKSPACE} or {_PACKAGE_JSON} found under {self.root}"
            )

        names: Set[str] = set()
        if root_manifest.is_file():
            root_name = _read_package_name(root_manifest)
            if root_name:
                names.add(root_name)

        for package_dir in self._package_dirs(patterns or []):
            name = _read_package_name(package_dir / _PACKAGE_JSON)
            if name:
                names.add(name)

        self.logger.debug("Workspace lists %d packages", len(names))
        return frozenset(names)

    def _workspace_patterns(self) -> List[str] | None:
        pnpm_file = self.root / _PNPM_WORKSPACE
        if pnpm_file.is_file():
            try:
                data = yaml.safe_load(pnpm_file.read_text(encoding="utf-8")) or {}
            except (OSError, yaml.YAMLError) as exc:
                raise ExternalResolutionError(f"Failed to read {pnpm_file}: {exc}") from exc
            if not isinstance(data, dict):
                raise ExternalResolutionError(f"{pnpm_file.name} must contain a mapping")
            return _str_list(data.get("packages"))

        root_manifest = self.root / _PACKAGE_JSON
        if not root_manifest.is_file():
            return None
        manifest = _load_manifest(root_manifest)
        workspaces = manifest.get("workspaces")
        if isinstance(workspaces, dict):
            workspaces = workspaces.get("packages")
        if workspaces is None:
            return None
        return _str_list(workspaces)

    def _package_dirs(self, patterns: Iterable[str]) -> List[Path]:
        included: Set[Path] = set()
        excluded: Set[Path] = set()
        for raw in patterns:
            negate = raw.startswith("!")
            pattern = raw[1:] if negate else raw
            pattern = pattern.strip().rstrip("/")
            if pattern.startswith("./"):
                pattern = pattern[2:]
            if not pattern:
                continue
            matches = {
                path
                for path in self.root.glob(pattern)
                if path.is_dir() and not _EXCLUDED_DIRS.intersection(path.relative_to(self.root).parts)
            }
            (excluded if negate else included).update(matches)
        return sorted(path for path in included - excluded if (path / _PACKAGE_JSON).is_file())


def filter_namespace(names: Iterable[str], namespace: str | None) -> frozenset[str]:
    """Keep the package names published under ``namespace`` (e.g. ``@my-ui``)."""
    if not namespace:
        return frozenset()
    prefix = namespace.rstrip("/") + "/"
    return frozenset(name for name in names if name.startswith(prefix))


def _load_manifest(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ExternalResolutionError(f"Failed to read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ExternalResolutionError(f"{path} must contain a JSON object")
    return data


def _read_package_name(path: Path) -> str | None:
    name = _load_manifest(path).get("name")
    return name if isinstance(name, str) and name else None


def _str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str)]
    return []


__all__ = ["WorkspaceResolver", "filter_namespace"]
