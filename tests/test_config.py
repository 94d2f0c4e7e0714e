"""Tests for uibuild.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from uibuild.config import BuildConfig, ConfigError, load_config
from uibuild.models import ExportConvention, ModuleFormat


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    root = tmp_path.resolve()
    assert isinstance(config, BuildConfig)
    assert config.root == root
    assert config.namespace is None
    assert config.components_root == root / "packages" / "components"
    assert config.entries_root == root / "packages"
    assert config.peer_dependencies == ("vue",)
    assert [target.id for target in config.targets] == ["esm", "cjs"]
    assert config.target("esm").output_dir == root / "dist" / "es"
    assert config.target("cjs").format is ModuleFormat.CJS
    assert config.staging_dir == root / "dist" / "types" / "components"


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / "uibuild.yml"
    config_file.write_text(
        """
namespace: "@my-ui"
components_root: packages/components
entries_root: packages/my-ui
build_output: build
source_extension: .ts
peer_dependencies: [vue, "@vue/shared"]
package_manifest: packages/my-ui/package.json
targets:
  esm:
    format: esm
    output_dir: build/es
    bundle_path: my-ui/es
  cjs:
    format: cjs
    output_dir: build/lib
    bundle_path: my-ui/lib
    export_convention: default
    extension: cjs
types:
  tsc: tools/tsc
size_report:
  gzip: false
""",
        encoding="utf-8",
    )

    config = load_config(config_file)
    root = tmp_path.resolve()

    assert config.namespace == "@my-ui"
    assert config.components_root == root / "packages" / "components"
    assert config.entries_root == root / "packages" / "my-ui"
    assert config.build_output == root / "build"
    assert config.source_extension == "ts"
    assert config.peer_dependencies == ("vue", "@vue/shared")
    assert config.package_manifest == root / "packages" / "my-ui" / "package.json"
    assert config.alias_token == "@my-ui"
    assert config.types.tsc == root / "tools" / "tsc"
    assert config.size_report.enabled is True
    assert config.size_report.gzip is False

    esm, cjs = config.targets
    assert esm.bundle_path == "my-ui/es"
    assert esm.export_convention is ExportConvention.NAMED
    assert cjs.export_convention is ExportConvention.DEFAULT
    assert cjs.component_path("button") == root / "build" / "lib" / "components" / "button" / "index.cjs"


def test_load_config_accepts_explicit_alias_and_empty_bundle_path(tmp_path: Path) -> None:
    (tmp_path / "uibuild.yml").write_text(
        """
namespace: "@my-ui"
targets:
  esm:
    output_dir: out/es
    bundle_path: null
types:
  alias_token: "@alias"
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.alias_token == "@alias"
    assert config.target("esm").format is ModuleFormat.ESM
    assert config.target("esm").bundle_path == ""


def test_load_config_rejects_invalid_yaml(tmp_path: Path) -> None:
    (tmp_path / "uibuild.yml").write_text("targets: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_rejects_non_mapping_root(tmp_path: Path) -> None:
    (tmp_path / "uibuild.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_rejects_unknown_format(tmp_path: Path) -> None:
    (tmp_path / "uibuild.yml").write_text(
        "targets:\n  umd:\n    output_dir: dist/umd\n",
        encoding="utf-8",
    )

    with pytest.raises(ConfigError, match="unknown format"):
        load_config(tmp_path)


def test_load_config_rejects_unknown_export_convention(tmp_path: Path) -> None:
    (tmp_path / "uibuild.yml").write_text(
        "targets:\n  esm:\n    output_dir: dist/es\n    export_convention: auto\n",
        encoding="utf-8",
    )

    with pytest.raises(ConfigError, match="export_convention"):
        load_config(tmp_path)


def test_load_config_rejects_colliding_targets(tmp_path: Path) -> None:
    (tmp_path / "uibuild.yml").write_text(
        """
targets:
  esm:
    output_dir: dist/out
  cjs:
    output_dir: dist/out
""",
        encoding="utf-8",
    )

    with pytest.raises(ConfigError, match="same files"):
        load_config(tmp_path)


def test_load_config_requires_output_dir(tmp_path: Path) -> None:
    (tmp_path / "uibuild.yml").write_text("targets:\n  esm:\n    format: esm\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="output_dir"):
        load_config(tmp_path)
