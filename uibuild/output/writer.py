"""Serialises bundle graphs per output target."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError

from ..bundler.graph import BundleGraph, export_name_literal
from ..errors import WriteError
from ..logging import get_logger
from ..models import EmittedFile, OutputTarget
from ..rewriter import PathRewriter, identity_rewriter, resolve_specifier
from .reporter import SizeObservation, SizeReporter


@dataclass(frozen=True)
class ExternalBinding:
    """One external import of a rendered bundle; ``key`` and ``specifier`` are JS literals."""

    name: str
    key: str
    specifier: str


class OutputWriter:
    """Renders one file per (graph, target) pair and persists it."""

    def __init__(self, reporter: SizeReporter | None = None, templates_dir: Path | None = None) -> None:
        self.reporter = reporter
        self.templates_dir = templates_dir or Path(__file__).with_name("templates")
        self.logger = get_logger("writer")
        self._env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def render(
        self,
        graph: BundleGraph,
        target: OutputTarget,
        path: Path,
        rewriter: PathRewriter = identity_rewriter,
    ) -> EmittedFile:
        """Serialise ``graph`` in ``target``'s format; the graph itself is never mutated."""
        externals: List[ExternalBinding] = [
            ExternalBinding(
                name=f"__nb_ext{index}",
                key=json.dumps(specifier),
                specifier=json.dumps(resolve_specifier(rewriter, specifier)),
            )
            for index, specifier in enumerate(graph.externals)
        ]
        exports = graph.entry_exports()
        template = self._env.get_template(f"{target.format.value}.js.j2")
        text = template.render(
            unit_name=json.dumps(graph.unit_name),
            entry=json.dumps(graph.entry),
            modules=[{"key": json.dumps(record.key), "code": record.code} for record in graph.modules],
            externals=externals,
            styles=json.dumps("\n".join(graph.styles)) if graph.styles else "",
            convention=target.export_convention.value,
            exports=exports,
            aliased=[
                {"key": json.dumps(name), "name": export_name_literal(name)} for name in exports.aliased
            ],
            star_specifiers=[
                json.dumps(resolve_specifier(rewriter, specifier)) for specifier in exports.star_externals
            ],
        )
        return EmittedFile(path=path, contents=text.encode("utf-8"))

    def write(self, emitted: EmittedFile) -> Optional[SizeObservation]:
        observation = self.reporter.observe(emitted) if self.reporter is not None else None
        emitted.path.parent.mkdir(parents=True, exist_ok=True)
        emitted.path.write_bytes(emitted.contents)
        self.logger.debug("Wrote %s", emitted.path)
        return observation

    def emit(
        self,
        graph: BundleGraph,
        target: OutputTarget,
        path: Path,
        rewriter: PathRewriter = identity_rewriter,
    ) -> EmittedFile:
        """Render and write; failures become a ``WriteError`` for this pair only."""
        try:
            emitted = self.render(graph, target, path, rewriter)
            self.write(emitted)
        except (OSError, TemplateError) as exc:
            raise WriteError(graph.unit_name, target.id, f"{exc.__class__.__name__}: {exc}") from exc
        return emitted


__all__ = ["ExternalBinding", "OutputWriter"]
