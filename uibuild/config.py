"""Configuration loading for uibuild (uibuild.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from .models import ExportConvention, ModuleFormat, OutputTarget

CONFIG_FILENAME = "uibuild.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed or is inconsistent."""


@dataclass(frozen=True)
class TypesConfig:
    """Declaration emission settings."""

    alias_token: Optional[str] = None
    tsc: Optional[Path] = None


@dataclass(frozen=True)
class SizeReportConfig:
    """Size reporting toggles."""

    enabled: bool = True
    gzip: bool = True


@dataclass(frozen=True)
class BuildConfig:
    """Represents the settings defined in uibuild.yml, read once per run."""

    root: Path
    namespace: Optional[str] = None
    components_root: Path = Path("packages/components")
    entries_root: Path = Path("packages")
    build_output: Path = Path("dist")
    source_extension: str = "ts"
    peer_dependencies: Tuple[str, ...] = ("vue",)
    package_manifest: Optional[Path] = None
    targets: Tuple[OutputTarget, ...] = field(default_factory=tuple)
    types: TypesConfig = field(default_factory=TypesConfig)
    size_report: SizeReportConfig = field(default_factory=SizeReportConfig)

    @property
    def staging_dir(self) -> Path:
        return self.build_output / "types" / "components"

    @property
    def alias_token(self) -> Optional[str]:
        return self.types.alias_token or self.namespace

    def target(self, target_id: str) -> OutputTarget:
        for target in self.targets:
            if target.id == target_id:
                return target
        raise KeyError(target_id)


def load_config(config_path: Path) -> BuildConfig:
    """Load configuration from disk, falling back to defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        build_output = root / "dist"
        return BuildConfig(
            root=root,
            components_root=root / "packages" / "components",
            entries_root=root / "packages",
            build_output=build_output,
            targets=_default_targets(build_output),
        )

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    build_output = _as_path(root, data.get("build_output")) or root / "dist"
    source_extension = (_as_str(data.get("source_extension")) or "ts").lstrip(".")

    peers = data.get("peer_dependencies")
    peer_dependencies = tuple(_as_str_list(peers)) if peers is not None else ("vue",)

    targets_data = data.get("targets")
    if targets_data is None:
        targets = _default_targets(build_output)
    else:
        targets = _parse_targets(root, targets_data)

    types_data = _as_dict(data.get("types"))
    types = TypesConfig(
        alias_token=_as_str(types_data.get("alias_token")),
        tsc=_as_path(root, types_data.get("tsc")),
    )

    size_data = _as_dict(data.get("size_report"))
    size_report = SizeReportConfig(
        enabled=_as_bool(size_data.get("enabled"), default=True),
        gzip=_as_bool(size_data.get("gzip"), default=True),
    )

    return BuildConfig(
        root=root,
        namespace=_as_str(data.get("namespace")),
        components_root=_as_path(root, data.get("components_root")) or root / "packages" / "components",
        entries_root=_as_path(root, data.get("entries_root")) or root / "packages",
        build_output=build_output,
        source_extension=source_extension,
        peer_dependencies=peer_dependencies,
        package_manifest=_as_path(root, data.get("package_manifest")),
        targets=targets,
        types=types,
        size_report=size_report,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _default_targets(build_output: Path) -> Tuple[OutputTarget, ...]:
    return (
        OutputTarget(id="esm", format=ModuleFormat.ESM, output_dir=build_output / "es"),
        OutputTarget(id="cjs", format=ModuleFormat.CJS, output_dir=build_output / "lib"),
    )


def _parse_targets(root: Path, value: Any) -> Tuple[OutputTarget, ...]:
    if not isinstance(value, dict) or not value:
        raise ConfigError("targets must be a non-empty mapping of target id to settings")

    targets: List[OutputTarget] = []
    for target_id, settings in value.items():
        settings = _as_dict(settings)
        name = str(target_id)
        format_name = _as_str(settings.get("format")) or name
        try:
            module_format = ModuleFormat(format_name)
        except ValueError as exc:
            raise ConfigError(f"Target '{name}' has unknown format '{format_name}'") from exc

        convention_name = _as_str(settings.get("export_convention")) or ExportConvention.NAMED.value
        try:
            convention = ExportConvention(convention_name)
        except ValueError as exc:
            raise ConfigError(
                f"Target '{name}' has unknown export_convention '{convention_name}'"
            ) from exc

        output_dir = _as_path(root, settings.get("output_dir"))
        if output_dir is None:
            raise ConfigError(f"Target '{name}' is missing output_dir")

        bundle_path = settings.get("bundle_path", "../..")
        targets.append(
            OutputTarget(
                id=name,
                format=module_format,
                output_dir=output_dir,
                export_convention=convention,
                bundle_path="" if bundle_path is None else str(bundle_path),
                extension=(_as_str(settings.get("extension")) or "js").lstrip("."),
            )
        )

    _ensure_unique_outputs(targets)
    return tuple(targets)


def _ensure_unique_outputs(targets: Sequence[OutputTarget]) -> None:
    seen: Dict[Path, str] = {}
    for target in targets:
        key = target.entry_path()
        if key in seen:
            raise ConfigError(
                f"Targets '{seen[key]}' and '{target.id}' would write to the same files under {target.output_dir}"
            )
        seen[key] = target.id


def _as_path(root: Path, value: Any) -> Optional[Path]:
    text = _as_str(value)
    if not text:
        return None
    path = Path(text).expanduser()
    return path if path.is_absolute() else root / path


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_bool(value: Any, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return default


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "BuildConfig",
    "CONFIG_FILENAME",
    "ConfigError",
    "SizeReportConfig",
    "TypesConfig",
    "load_config",
]
