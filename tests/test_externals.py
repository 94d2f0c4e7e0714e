"""Tests for external import classification."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from uibuild.errors import ExternalResolutionError
from uibuild.externals import ExternalMode, load_manifest_dependencies, make_external_predicate


def test_full_mode_externalises_everything() -> None:
    predicate = make_external_predicate(ExternalMode.FULL, ["@my-ui/utils"])

    assert predicate("./button")
    assert predicate("lodash")
    assert predicate("@my-ui/utils")


def test_component_mode_matches_packages_and_subpaths() -> None:
    predicate = make_external_predicate(
        ExternalMode.COMPONENT,
        ["@my-ui/utils"],
        peer_dependencies=["vue"],
        manifest_dependencies=["dayjs"],
    )

    assert predicate("vue")
    assert predicate("@my-ui/utils/dom")
    assert predicate("dayjs/plugin/utc")
    assert not predicate("vue-router")
    assert not predicate("./local")
    assert not predicate("lodash")


def test_predicate_is_immutable() -> None:
    predicate = make_external_predicate(ExternalMode.COMPONENT, ["a"])

    with pytest.raises(AttributeError):
        predicate.packages = frozenset({"b"})  # type: ignore[misc]


def test_load_manifest_dependencies(tmp_path: Path) -> None:
    manifest = tmp_path / "package.json"
    manifest.write_text(
        json.dumps(
            {
                "name": "my-ui",
                "dependencies": {"dayjs": "^1.0.0", "@popperjs/core": "^2"},
                "peerDependencies": {"vue": "^3.2.0"},
                "devDependencies": {"vitest": "*"},
            }
        ),
        encoding="utf-8",
    )

    assert load_manifest_dependencies(manifest) == frozenset({"dayjs", "@popperjs/core", "vue"})
    assert load_manifest_dependencies(None) == frozenset()


def test_load_manifest_dependencies_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ExternalResolutionError):
        load_manifest_dependencies(tmp_path / "missing.json")
