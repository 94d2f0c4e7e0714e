"""Import specifier resolution for bundled modules."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from ..errors import ResolutionError

SOURCE_EXTENSIONS: Tuple[str, ...] = (
    ".ts",
    ".tsx",
    ".mts",
    ".cts",
    ".js",
    ".jsx",
    ".mjs",
    ".cjs",
    ".vue",
    ".json",
)

_JS_TO_TS = {".js": (".ts", ".tsx"), ".mjs": (".mts",), ".cjs": (".cts",), ".jsx": (".tsx",)}
_EXPORT_CONDITIONS = ("import", "module", "browser", "default", "require")


def is_relative(specifier: str) -> bool:
    return specifier.startswith("./") or specifier.startswith("../") or specifier in {".", ".."}


class ModuleResolver:
    """Maps import specifiers to files on disk.

    Relative and absolute specifiers must resolve or a ``ResolutionError`` is raised;
    bare specifiers walk ``node_modules`` upwards and return ``None`` when no package
    is installed, leaving the caller to decide.
    """

    def __init__(self, extensions: Iterable[str] = SOURCE_EXTENSIONS) -> None:
        self.extensions = tuple(extensions)

    def resolve(self, specifier: str, importer: Path) -> Optional[Path]:
        if is_relative(specifier) or specifier.startswith("/"):
            base = Path(specifier) if specifier.startswith("/") else importer.parent / specifier
            resolved = self._resolve_path(base)
            if resolved is None:
                raise ResolutionError(importer, f"Cannot resolve {specifier!r}")
            return resolved
        return self._resolve_package(specifier, importer)

    def _resolve_path(self, base: Path) -> Optional[Path]:
        candidate = self._resolve_file(base)
        if candidate is not None:
            return candidate
        if base.is_dir():
            return self._resolve_directory(base)
        return None

    def _resolve_file(self, base: Path) -> Optional[Path]:
        if base.is_file():
            return base.resolve()
        for extension in self.extensions:
            candidate = base.with_name(base.name + extension)
            if candidate.is_file():
                return candidate.resolve()
        for replacement in _JS_TO_TS.get(base.suffix, ()):
            candidate = base.with_suffix(replacement)
            if candidate.is_file():
                return candidate.resolve()
        return None

    def _resolve_directory(self, directory: Path) -> Optional[Path]:
        manifest = directory / "package.json"
        if manifest.is_file():
            entry = _manifest_entry(_read_manifest(manifest), ".")
            if entry is not None:
                candidate = self._resolve_file(directory / entry)
                if candidate is not None:
                    return candidate
        return self._resolve_file(directory / "index")

    def _resolve_package(self, specifier: str, importer: Path) -> Optional[Path]:
        package_name, subpath = _split_package(specifier)
        directory = importer.parent.resolve()
        for candidate_root in (directory, *directory.parents):
            package_dir = candidate_root / "node_modules" / package_name
            if not package_dir.is_dir():
                continue
            if not subpath:
                return self._resolve_directory(package_dir)
            manifest_path = package_dir / "package.json"
            if manifest_path.is_file():
                entry = _manifest_entry(_read_manifest(manifest_path), f"./{subpath}", subpath_only=True)
                if entry is not None:
                    candidate = self._resolve_file(package_dir / entry)
                    if candidate is not None:
                        return candidate
            return self._resolve_path(package_dir / subpath)
        return None


def _split_package(specifier: str) -> Tuple[str, str]:
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2]), "/".join(parts[2:])
    return parts[0], "/".join(parts[1:])


def _read_manifest(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def _manifest_entry(manifest: Dict[str, Any], subpath: str, *, subpath_only: bool = False) -> Optional[str]:
    exports = manifest.get("exports")
    if exports is not None:
        if isinstance(exports, (str, list)) or (
            isinstance(exports, dict) and not any(key.startswith(".") for key in exports)
        ):
            exports = {".": exports}
        if isinstance(exports, dict) and subpath in exports:
            target = _pick_condition(exports[subpath])
            if target is not None:
                return target
    if subpath_only:
        return None
    for field_name in ("module", "main"):
        value = manifest.get(field_name)
        if isinstance(value, str) and value:
            return value
    return None


def _pick_condition(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        for item in value:
            picked = _pick_condition(item)
            if picked is not None:
                return picked
        return None
    if isinstance(value, dict):
        for condition in _EXPORT_CONDITIONS:
            if condition in value:
                picked = _pick_condition(value[condition])
                if picked is not None:
                    return picked
    return None


__all__ = ["ModuleResolver", "SOURCE_EXTENSIONS", "is_relative"]
