"""Builds one target-agnostic bundle graph per component unit."""

from __future__ import annotations

import json
import os
from collections import deque
from pathlib import Path
from typing import Callable, Deque, Dict, List, Optional

from ..errors import BundleError, TransformError
from ..logging import unit_logger
from ..models import ComponentUnit
from .graph import BundleGraph, ModuleLink, ModuleRecord
from .parser import dialect_for
from .resolver import ModuleResolver
from .sfc import parse_sfc
from .transform import Linker, ModuleTransformer

SCRIPT_SUFFIXES = frozenset({".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs"})

ExternalTest = Callable[[str], bool]


class BundleBuilder:
    """Parses, transforms and links every module reachable from a unit's entry.

    Each module is parsed exactly once; the resulting graph is shared read-only by
    every output target.
    """

    def __init__(self, root: Path, resolver: ModuleResolver | None = None) -> None:
        self.root = root.resolve()
        self.resolver = resolver or ModuleResolver()

    def build(self, unit: ComponentUnit, external: ExternalTest) -> Optional[BundleGraph]:
        """Return the graph for ``unit`` or ``None`` when it has no entry file."""
        if unit.entry_file is None:
            return None
        try:
            return self._build(unit, external)
        except TransformError as exc:
            raise BundleError(unit.name, str(exc)) from exc
        except OSError as exc:
            raise BundleError(unit.name, f"{exc.__class__.__name__}: {exc}") from exc

    def _build(self, unit: ComponentUnit, external: ExternalTest) -> BundleGraph:
        entry = unit.entry_file.resolve()
        keys: Dict[Path, str] = {entry: self._key(entry)}
        queue: Deque[Path] = deque([entry])
        externals: Dict[str, None] = {}
        styles: List[str] = []
        records: List[ModuleRecord] = []
        logger = unit_logger("bundler", unit.name)

        while queue:
            path = queue.popleft()

            def link(specifier: str, importer: Path = path) -> ModuleLink:
                if external(specifier):
                    externals.setdefault(specifier, None)
                    return ModuleLink(specifier, external=True)
                resolved = self.resolver.resolve(specifier, importer)
                if resolved is None:
                    logger.warning(
                        "Could not resolve %r from %s; keeping it external", specifier, self._key(importer)
                    )
                    externals.setdefault(specifier, None)
                    return ModuleLink(specifier, external=True)
                key = keys.get(resolved)
                if key is None:
                    key = self._key(resolved)
                    keys[resolved] = key
                    queue.append(resolved)
                return ModuleLink(key)

            records.append(self._load(path, keys[path], link, styles))

        logger.debug("Linked %d modules", len(records))
        return BundleGraph(
            unit_name=unit.name,
            entry=keys[entry],
            modules=tuple(records),
            externals=tuple(externals),
            styles=tuple(styles),
        )

    def _load(self, path: Path, key: str, link: Linker, styles: List[str]) -> ModuleRecord:
        suffix = path.suffix.lower()
        if suffix == ".css":
            styles.append(path.read_text(encoding="utf-8").strip())
            return ModuleRecord(key=key, code="")
        if suffix == ".json":
            text = path.read_text(encoding="utf-8")
            try:
                json.loads(text)
            except json.JSONDecodeError as exc:
                raise TransformError(path, f"Invalid JSON: {exc.msg}", line=exc.lineno, column=exc.colno) from exc
            return ModuleRecord(key=key, code=f"module.exports = {text.strip()};")
        if suffix == ".vue":
            return self._load_sfc(path, key, link, styles)
        if suffix not in SCRIPT_SUFFIXES:
            raise TransformError(path, f"Unsupported module type {suffix!r}")

        result = ModuleTransformer(path.read_bytes(), path, link, dialect=dialect_for(path)).transform()
        return ModuleRecord(
            key=key,
            code=result.code,
            export_names=result.export_names,
            star_sources=result.star_sources,
            is_esm=result.is_esm,
        )

    def _load_sfc(self, path: Path, key: str, link: Linker, styles: List[str]) -> ModuleRecord:
        descriptor = parse_sfc(path.read_text(encoding="utf-8"), path)
        styles.extend(block.content.strip() for block in descriptor.styles)
        template = descriptor.template.content.strip() if descriptor.template is not None else None
        script = descriptor.script
        transformer = ModuleTransformer(
            script.content if script is not None else "",
            path,
            link,
            dialect=dialect_for(path, descriptor.script_lang),
            sfc_template=template,
            line_offset=script.line - 1 if script is not None else 0,
        )
        result = transformer.transform()
        return ModuleRecord(
            key=key,
            code=result.code,
            export_names=result.export_names,
            star_sources=result.star_sources,
            is_esm=result.is_esm,
        )

    def _key(self, path: Path) -> str:
        return Path(os.path.relpath(path, self.root)).as_posix()


__all__ = ["BundleBuilder", "ExternalTest", "SCRIPT_SUFFIXES"]
