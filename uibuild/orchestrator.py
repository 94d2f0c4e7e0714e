"""Build orchestration: components, aggregate entry, declarations."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Callable, List, Mapping, Sequence, Tuple

from .bundler import BundleBuilder
from .config import BuildConfig
from .declarations import DeclarationCompiler, TscDeclarationCompiler, TypeEmitter
from .discovery import discover_aggregate_entry, discover_components, discover_entry_sources
from .distributor import Distributor
from .errors import BundleError, WriteError
from .externals import (
    ExternalMode,
    ExternalPredicate,
    load_manifest_dependencies,
    make_external_predicate,
)
from .logging import get_logger, unit_logger
from .models import ComponentUnit, OutputTarget
from .output import OutputWriter, SizeReporter
from .report import BuildReport, TargetOutcome, TargetState, UnitOutcome, UnitState
from .rewriter import PathRewriter, make_path_rewriter
from .workspace import WorkspaceResolver, filter_namespace


class BuildCommand(str, Enum):
    BUILD = "build"
    COMPONENTS = "components"
    ENTRY = "entry"
    TYPES = "types"


@dataclass(frozen=True)
class BuildContext:
    """Run-wide immutable inputs computed once before any bundling starts."""

    internal_packages: frozenset[str]
    component_external: ExternalPredicate
    full_external: ExternalPredicate
    rewriters: Mapping[str, PathRewriter]
    entry_rewriters: Mapping[str, PathRewriter]


class BuildOrchestrator:
    """Coordinates one build run and aggregates every outcome into a ``BuildReport``.

    Units are isolated: a failing unit or target write is recorded and the run goes
    on. Only a failure to list workspace packages aborts the run, and it does so
    before any bundle is built.
    """

    def __init__(
        self,
        config: BuildConfig,
        *,
        workspace: WorkspaceResolver | None = None,
        builder: BundleBuilder | None = None,
        writer: OutputWriter | None = None,
        declaration_compiler: DeclarationCompiler | None = None,
        distributor: Distributor | None = None,
    ) -> None:
        self.config = config
        self.workspace = workspace or WorkspaceResolver(config.root)
        self.builder = builder or BundleBuilder(config.root)
        if writer is None:
            reporter = SizeReporter(gzip=config.size_report.gzip) if config.size_report.enabled else None
            writer = OutputWriter(reporter=reporter)
        self.writer = writer
        self.declaration_compiler = declaration_compiler or TscDeclarationCompiler(
            config.root, config.types.tsc
        )
        self.distributor = distributor or Distributor()
        self.logger = get_logger("orchestrator")

    def run(self, command: BuildCommand = BuildCommand.BUILD) -> BuildReport:
        return asyncio.run(self.run_async(command))

    async def run_async(self, command: BuildCommand = BuildCommand.BUILD) -> BuildReport:
        context = self.prepare()
        report = BuildReport()
        steps = []
        if command in (BuildCommand.BUILD, BuildCommand.COMPONENTS):
            steps.append(self.build_each_component(context, report))
        if command in (BuildCommand.BUILD, BuildCommand.ENTRY):
            steps.append(self.build_component_entry(context, report))
        if command in (BuildCommand.BUILD, BuildCommand.TYPES):
            steps.append(self.build_types(report))
        await asyncio.gather(*steps)
        return report

    def prepare(self) -> BuildContext:
        """List workspace packages once and derive the shared predicates and rewriters."""
        config = self.config
        internal = filter_namespace(self.workspace.list_internal_package_names(), config.namespace)
        manifest_dependencies = load_manifest_dependencies(config.package_manifest)
        self.logger.debug("Internal packages: %s", ", ".join(sorted(internal)) or "(none)")
        rewriters = {
            target.id: make_path_rewriter(target, config.namespace, internal) for target in config.targets
        }
        entry_rewriters = {
            target.id: make_path_rewriter(target, config.namespace, internal, entry=True)
            for target in config.targets
        }
        return BuildContext(
            internal_packages=internal,
            component_external=make_external_predicate(
                ExternalMode.COMPONENT,
                internal,
                config.peer_dependencies,
                manifest_dependencies,
            ),
            full_external=make_external_predicate(ExternalMode.FULL, internal),
            rewriters=MappingProxyType(rewriters),
            entry_rewriters=MappingProxyType(entry_rewriters),
        )

    async def build_each_component(self, context: BuildContext, report: BuildReport) -> None:
        config = self.config
        units = discover_components(config.components_root, config.source_extension)
        buildable: List[ComponentUnit] = []
        for unit in units:
            if unit.buildable:
                buildable.append(unit)
            else:
                self.logger.info("Skipping %s: no index.%s", unit.name, config.source_extension)
                report.skipped.append(unit.name)

        results = await asyncio.gather(
            *(
                self._build_unit(
                    unit,
                    context.component_external,
                    [
                        (target, target.component_path(unit.name), context.rewriters[target.id])
                        for target in config.targets
                    ],
                )
                for unit in buildable
            ),
            return_exceptions=True,
        )
        for unit, result in zip(buildable, results):
            report.units.append(self._unit_result(unit, result))

    async def build_component_entry(self, context: BuildContext, report: BuildReport) -> None:
        config = self.config
        unit = discover_aggregate_entry(config.components_root, config.source_extension)
        if not unit.buildable:
            self.logger.warning("No aggregate entry index.%s under %s", config.source_extension, config.components_root)
            report.skipped.append(unit.name)
            return
        results = await asyncio.gather(
            self._build_unit(
                unit,
                context.full_external,
                [
                    (target, target.entry_path(), context.entry_rewriters[target.id])
                    for target in config.targets
                ],
            ),
            return_exceptions=True,
        )
        report.entry = self._unit_result(unit, results[0])

    async def build_types(self, report: BuildReport) -> None:
        config = self.config
        sources = discover_entry_sources(config.entries_root, config.source_extension)
        emitter = TypeEmitter(self.declaration_compiler, config.staging_dir, config.alias_token)
        report.declarations = await emitter.emit_all(sources)
        # Every declaration task has resolved at this point.
        report.distributions = await self.distributor.distribute(config.staging_dir, config.targets)

    async def _build_unit(
        self,
        unit: ComponentUnit,
        external: Callable[[str], bool],
        outputs: Sequence[Tuple[OutputTarget, Path, PathRewriter]],
    ) -> UnitOutcome:
        outcome = UnitOutcome(unit_name=unit.name)
        loop = asyncio.get_running_loop()

        self._transition(outcome, UnitState.BUILDING)
        try:
            graph = await loop.run_in_executor(None, self.builder.build, unit, external)
        except BundleError as exc:
            return self._fail(outcome, exc)
        except Exception as exc:
            return self._fail(outcome, BundleError(unit.name, f"{exc.__class__.__name__}: {exc}"))
        if graph is None:
            return self._fail(outcome, BundleError(unit.name, "unit has no entry file"))
        self._transition(outcome, UnitState.READY)

        outcome.targets = [TargetOutcome(target_id=target.id, path=path) for target, path, _ in outputs]
        results = await asyncio.gather(
            *(
                loop.run_in_executor(None, self.writer.emit, graph, target, path, rewriter)
                for target, path, rewriter in outputs
            ),
            return_exceptions=True,
        )
        for target_outcome, result in zip(outcome.targets, results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception):
                error = result if isinstance(result, WriteError) else WriteError(
                    unit.name, target_outcome.target_id, f"{result.__class__.__name__}: {result}"
                )
                target_outcome.state = TargetState.WRITE_FAILED
                target_outcome.error = error
                unit_logger("orchestrator", unit.name).error(
                    "write to %s failed: %s", target_outcome.target_id, error.diagnostic
                )
            else:
                target_outcome.state = TargetState.WRITTEN
        return outcome

    def _unit_result(self, unit: ComponentUnit, result: UnitOutcome | BaseException) -> UnitOutcome:
        if isinstance(result, UnitOutcome):
            return result
        if not isinstance(result, Exception):
            raise result
        outcome = UnitOutcome(unit_name=unit.name)
        return self._fail(outcome, BundleError(unit.name, f"{result.__class__.__name__}: {result}"))

    def _fail(self, outcome: UnitOutcome, error: BundleError) -> UnitOutcome:
        outcome.error = error
        self._transition(outcome, UnitState.FAILED)
        unit_logger("orchestrator", outcome.unit_name).error("%s", error.diagnostic)
        return outcome

    def _transition(self, outcome: UnitOutcome, state: UnitState) -> None:
        unit_logger("orchestrator", outcome.unit_name).debug("%s -> %s", outcome.state.value, state.value)
        outcome.state = state


__all__ = ["BuildCommand", "BuildContext", "BuildOrchestrator"]
