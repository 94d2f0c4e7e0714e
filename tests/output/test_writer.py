"""Tests for per-target bundle serialisation."""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

import pytest

from uibuild.bundler.graph import BundleGraph, ModuleLink, ModuleRecord
from uibuild.errors import WriteError
from uibuild.models import EmittedFile, ExportConvention, ModuleFormat, OutputTarget
from uibuild.output import OutputWriter, SizeReporter
from uibuild.rewriter import make_path_rewriter

INTERNAL = frozenset({"@my-ui/utils"})

GRAPH = BundleGraph(
    unit_name="button",
    entry="components/button/index.ts",
    modules=(
        ModuleRecord(
            key="components/button/index.ts",
            code='const __nb_m0 = __nb_external("@my-ui/utils/format");\nconst Button = {};',
            export_names=("Button", "default"),
            star_sources=(ModuleLink("vue", external=True),),
            is_esm=True,
        ),
        ModuleRecord(key="components/button/style.css", code=""),
    ),
    externals=("vue", "@my-ui/utils/format"),
    styles=(".x-button { color: red; }",),
)


def _target(target_id: str, module_format: ModuleFormat, tmp_path: Path, **kwargs: object) -> OutputTarget:
    return OutputTarget(
        id=target_id,
        format=module_format,
        output_dir=tmp_path / target_id,
        bundle_path=f"my-ui/{target_id}",
        **kwargs,
    )


def _render(target: OutputTarget, graph: BundleGraph = GRAPH) -> str:
    writer = OutputWriter()
    rewriter = make_path_rewriter(target, "@my-ui", INTERNAL)
    emitted = writer.render(graph, target, target.component_path(graph.unit_name), rewriter)
    return emitted.contents.decode("utf-8")


def test_esm_output_rewrites_internal_imports(tmp_path: Path) -> None:
    text = _render(_target("es", ModuleFormat.ESM, tmp_path))

    assert 'import * as __nb_ext0 from "vue";' in text
    assert 'import * as __nb_ext1 from "my-ui/es/utils/format";' in text
    assert '"@my-ui/utils/format": __nb_ext1,' in text
    assert '"components/button/index.ts": function (module, exports) {' in text
    assert "export const { Button } = __nb_entry;" in text
    assert "export default __nb_entry.default;" in text
    assert 'export * from "vue";' in text
    assert 'style.textContent = ".x-button { color: red; }";' in text


def test_cjs_output_uses_require_and_its_own_bundle_path(tmp_path: Path) -> None:
    text = _render(_target("lib", ModuleFormat.CJS, tmp_path))

    assert text.startswith("'use strict';")
    assert '"@my-ui/utils/format": require("my-ui/lib/utils/format"),' in text
    assert '"vue": require("vue"),' in text
    assert "import " not in text.split("const __nb_modules")[0]
    assert 'Object.defineProperty(exports, "__esModule", { value: true });' in text


def test_export_conventions(tmp_path: Path) -> None:
    default_text = _render(
        _target("lib", ModuleFormat.CJS, tmp_path, export_convention=ExportConvention.DEFAULT)
    )
    none_text = _render(_target("es", ModuleFormat.ESM, tmp_path, export_convention=ExportConvention.NONE))

    assert "module.exports = __nb_default(__nb_entry);" in default_text
    assert '__nb_require("components/button/index.ts");' in none_text
    assert "export " not in none_text


def test_esm_aliases_reserved_and_string_export_names(tmp_path: Path) -> None:
    graph = BundleGraph(
        unit_name="ops",
        entry="ops.ts",
        modules=(
            ModuleRecord(
                key="ops.ts",
                code="const remove = () => {};",
                export_names=("remove", "delete", "kebab-name"),
                is_esm=True,
            ),
        ),
    )

    text = _render(_target("es", ModuleFormat.ESM, tmp_path), graph)

    assert "export const { remove } = __nb_entry;" in text
    assert 'const __nb_alias0 = __nb_entry["delete"];' in text
    assert "export { __nb_alias0 as delete };" in text
    assert 'const __nb_alias1 = __nb_entry["kebab-name"];' in text
    assert 'export { __nb_alias1 as "kebab-name" };' in text
    assert "export const { remove, delete" not in text


def test_commonjs_entry_is_exported_whole(tmp_path: Path) -> None:
    graph = BundleGraph(
        unit_name="legacy",
        entry="legacy.js",
        modules=(ModuleRecord(key="legacy.js", code="module.exports = { a: 1 };"),),
    )

    esm = _render(_target("es", ModuleFormat.ESM, tmp_path), graph)
    cjs = _render(_target("lib", ModuleFormat.CJS, tmp_path), graph)

    assert "export default __nb_entry;" in esm
    assert "module.exports = __nb_entry;" in cjs
    assert "document.createElement" not in esm


def test_render_is_deterministic_and_leaves_graph_untouched(tmp_path: Path) -> None:
    target = _target("es", ModuleFormat.ESM, tmp_path)

    first = _render(target)
    second = _render(target)

    assert first == second
    assert GRAPH.externals == ("vue", "@my-ui/utils/format")


def test_write_reports_size_then_persists(tmp_path: Path) -> None:
    messages: List[Tuple[int, str]] = []
    writer = OutputWriter(reporter=SizeReporter(lambda level, message: messages.append((level, message))))
    target = _target("es", ModuleFormat.ESM, tmp_path)

    emitted = writer.emit(GRAPH, target, target.component_path("button"))

    path = tmp_path / "es" / "components" / "button" / "index.js"
    assert emitted.path == path
    assert path.read_bytes() == emitted.contents
    assert len(messages) == 1
    assert str(path) in messages[0][1]


def test_emit_wraps_io_failures(tmp_path: Path) -> None:
    blocker = tmp_path / "es"
    blocker.write_text("not a directory", encoding="utf-8")
    target = _target("es", ModuleFormat.ESM, tmp_path)

    with pytest.raises(WriteError) as excinfo:
        OutputWriter().emit(GRAPH, target, target.component_path("button"))

    assert excinfo.value.unit_name == "button"
    assert excinfo.value.target_id == "es"


def test_write_creates_parent_directories(tmp_path: Path) -> None:
    emitted = EmittedFile(path=tmp_path / "deep" / "nested" / "index.js", contents=b"export {};\n")

    assert OutputWriter().write(emitted) is None
    assert emitted.path.read_bytes() == b"export {};\n"
