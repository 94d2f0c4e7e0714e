"""Tests for bundle graph construction."""

from __future__ import annotations

from collections import Counter
from pathlib import Path

import pytest

from tests._fixtures.workspace_builder import WorkspaceBuilder
from uibuild.bundler import BundleBuilder, ModuleLink
from uibuild.bundler import transform as transform_module
from uibuild.errors import BundleError
from uibuild.externals import ExternalMode, make_external_predicate
from uibuild.models import ComponentUnit

COMPONENT_EXTERNAL = make_external_predicate(
    ExternalMode.COMPONENT, ["@my-ui/utils"], peer_dependencies=["vue"]
)


def _unit(workspace_builder: WorkspaceBuilder, name: str) -> ComponentUnit:
    root = workspace_builder.path(f"components/{name}")
    entry = root / "index.ts"
    return ComponentUnit(name=name, source_root=root, entry_file=entry if entry.exists() else None)


@pytest.fixture
def button_workspace(workspace_builder: WorkspaceBuilder) -> WorkspaceBuilder:
    workspace_builder.write(
        {
            "components/button/index.ts": """
                import Button from './src/button.vue'
                import { buttonProps } from './src/props'
                import './style.css'

                export { Button, buttonProps }
                export default Button
            """,
            "components/button/src/props.ts": """
                import { isString } from '@my-ui/utils'
                import sizes from './sizes.json'

                export const buttonProps = { size: { type: String, validator: isString, values: sizes } }
            """,
            "components/button/src/sizes.json": '["small", "large"]\n',
            "components/button/src/button.vue": """
                <template>
                  <button class="x-button"><slot /></button>
                </template>

                <script lang="ts">
                import { defineComponent } from 'vue'
                import { buttonProps } from './props'

                export default defineComponent({ name: 'XButton', props: buttonProps })
                </script>

                <style>
                .x-button { border: 0; }
                </style>
            """,
            "components/button/style.css": ".x-button { color: red; }\n",
        }
    )
    return workspace_builder


def test_builds_graph_in_discovery_order(button_workspace: WorkspaceBuilder) -> None:
    builder = BundleBuilder(button_workspace.path())

    graph = builder.build(_unit(button_workspace, "button"), COMPONENT_EXTERNAL)

    assert graph is not None
    assert graph.unit_name == "button"
    assert graph.entry == "components/button/index.ts"
    assert [record.key for record in graph.modules] == [
        "components/button/index.ts",
        "components/button/src/button.vue",
        "components/button/src/props.ts",
        "components/button/style.css",
        "components/button/src/sizes.json",
    ]
    assert graph.externals == ("vue", "@my-ui/utils")
    assert graph.styles == (".x-button { border: 0; }", ".x-button { color: red; }")

    sfc = graph.module("components/button/src/button.vue")
    assert '__nb_sfc.template = "<button class=\\"x-button\\"><slot /></button>";' in sfc.code
    assert '__nb_require("components/button/src/props.ts")' in sfc.code
    assert graph.module("components/button/src/sizes.json").code == 'module.exports = ["small", "large"];'

    exports = graph.entry_exports()
    assert exports.names == ("Button", "buttonProps")
    assert exports.has_default


def test_parses_each_module_once(
    button_workspace: WorkspaceBuilder, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls: Counter[str] = Counter()
    original = transform_module.parse_source

    def counting_parse(source, dialect, path, **kwargs):
        calls[Path(path).name] += 1
        return original(source, dialect, path, **kwargs)

    monkeypatch.setattr(transform_module, "parse_source", counting_parse)

    BundleBuilder(button_workspace.path()).build(_unit(button_workspace, "button"), COMPONENT_EXTERNAL)

    assert calls == {"index.ts": 1, "button.vue": 1, "props.ts": 1}


def test_full_mode_keeps_every_import_external(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.write(
        {
            "components/index.ts": """
                export * from './button'
                export { default as Input } from './input'
            """,
        }
    )
    unit = ComponentUnit(
        name="index",
        source_root=workspace_builder.path("components"),
        entry_file=workspace_builder.path("components/index.ts"),
    )

    graph = BundleBuilder(workspace_builder.path()).build(
        unit, make_external_predicate(ExternalMode.FULL, [])
    )

    assert graph is not None
    assert len(graph.modules) == 1
    assert graph.externals == ("./button", "./input")
    exports = graph.entry_exports()
    assert exports.names == ("Input",)
    assert exports.star_externals == ("./button",)


def test_unresolved_bare_import_stays_external(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.write(
        {"components/tag/index.ts": "import dayjs from 'dayjs'\nexport const now = () => dayjs()\n"}
    )

    graph = BundleBuilder(workspace_builder.path()).build(_unit(workspace_builder, "tag"), COMPONENT_EXTERNAL)

    assert graph is not None
    assert graph.externals == ("dayjs",)
    assert ModuleLink("dayjs", external=True).expression() in graph.module(graph.entry).code


def test_inlines_installed_packages(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.write(
        {
            "components/tag/index.ts": "import clamp from 'tiny-clamp'\nexport const fit = clamp\n",
            "node_modules/tiny-clamp/index.js": "module.exports = function clamp(v) { return v }\n",
        }
    )

    graph = BundleBuilder(workspace_builder.path()).build(_unit(workspace_builder, "tag"), COMPONENT_EXTERNAL)

    assert graph is not None
    assert graph.externals == ()
    assert [record.key for record in graph.modules][-1] == "node_modules/tiny-clamp/index.js"
    assert not graph.modules[-1].is_esm


def test_unit_without_entry_builds_nothing(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.write({"components/icons/README.md": "icons\n"})

    assert BundleBuilder(workspace_builder.path()).build(_unit(workspace_builder, "icons"), COMPONENT_EXTERNAL) is None


def test_failures_are_scoped_to_the_unit(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.write(
        {
            "components/broken/index.ts": "import { x } from './missing'\nexport const y = x\n",
            "components/syntax/index.ts": "export const = ;\n",
        }
    )
    builder = BundleBuilder(workspace_builder.path())

    with pytest.raises(BundleError) as missing:
        builder.build(_unit(workspace_builder, "broken"), COMPONENT_EXTERNAL)
    with pytest.raises(BundleError) as syntax:
        builder.build(_unit(workspace_builder, "syntax"), COMPONENT_EXTERNAL)

    assert missing.value.unit_name == "broken"
    assert "./missing" in missing.value.diagnostic
    assert syntax.value.unit_name == "syntax"
    assert "components/syntax/index.ts" in syntax.value.diagnostic
