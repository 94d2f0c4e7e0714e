"""Target-agnostic bundle graph produced once per unit."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")

# Valid export names that cannot be declared as local bindings.
_RESERVED_WORDS = frozenset(
    {
        "arguments", "await", "break", "case", "catch", "class", "const", "continue",
        "debugger", "default", "delete", "do", "else", "enum", "eval", "export",
        "extends", "false", "finally", "for", "function", "if", "implements", "import",
        "in", "instanceof", "interface", "let", "new", "null", "package", "private",
        "protected", "public", "return", "static", "super", "switch", "this", "throw",
        "true", "try", "typeof", "var", "void", "while", "with", "yield",
    }
)


@dataclass(frozen=True)
class ModuleLink:
    """Where an import specifier points: a bundled module key or an external specifier."""

    key: str
    external: bool = False

    def expression(self) -> str:
        loader = "__nb_external" if self.external else "__nb_require"
        return f"{loader}({json.dumps(self.key)})"


@dataclass(frozen=True)
class ModuleRecord:
    """One transformed module inside a bundle graph."""

    key: str
    code: str
    export_names: Tuple[str, ...] = ()
    star_sources: Tuple[ModuleLink, ...] = ()
    is_esm: bool = False


@dataclass(frozen=True)
class EntryExports:
    """Statically known exports of the entry module.

    ``names`` can be bound directly; ``aliased`` holds reserved words and string
    export names, which need a generated local behind an ``export { x as name }``.
    """

    names: Tuple[str, ...]
    has_default: bool
    star_externals: Tuple[str, ...]
    is_esm: bool
    aliased: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BundleGraph:
    """Parsed and transformed modules of one unit; shared read-only by every target."""

    unit_name: str
    entry: str
    modules: Tuple[ModuleRecord, ...]
    externals: Tuple[str, ...] = ()
    styles: Tuple[str, ...] = ()

    def module(self, key: str) -> ModuleRecord:
        for record in self.modules:
            if record.key == key:
                return record
        raise KeyError(key)

    def entry_exports(self) -> EntryExports:
        entry = self.module(self.entry)
        if not entry.is_esm:
            return EntryExports(names=(), has_default=False, star_externals=(), is_esm=False)

        records: Dict[str, ModuleRecord] = {record.key: record for record in self.modules}
        names: Dict[str, None] = {}
        star_externals: Dict[str, None] = {}
        visited: Set[str] = set()

        def collect(record: ModuleRecord, include_default: bool) -> None:
            if record.key in visited:
                return
            visited.add(record.key)
            for name in record.export_names:
                if include_default or name != "default":
                    names.setdefault(name, None)
            for link in record.star_sources:
                if link.external:
                    star_externals.setdefault(link.key, None)
                elif link.key in records:
                    collect(records[link.key], include_default=False)

        collect(entry, include_default=True)
        has_default = "default" in names
        plain: List[str] = []
        aliased: List[str] = []
        for name in names:
            if name == "default":
                continue
            if _IDENTIFIER.match(name) and name not in _RESERVED_WORDS:
                plain.append(name)
            else:
                aliased.append(name)
        return EntryExports(
            names=tuple(plain),
            has_default=has_default,
            star_externals=tuple(star_externals),
            is_esm=True,
            aliased=tuple(aliased),
        )


def export_name_literal(name: str) -> str:
    """Render ``name`` for an ES export clause; non-identifiers become string names."""
    return name if _IDENTIFIER.match(name) else json.dumps(name)


__all__ = ["BundleGraph", "EntryExports", "ModuleLink", "ModuleRecord", "export_name_literal"]
