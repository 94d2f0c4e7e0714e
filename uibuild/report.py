"""Per-run outcome records and the aggregated build report."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import BuildFailure, BundleError, DistributeError, TypeEmitError, WriteError


class UnitState(str, Enum):
    PENDING = "pending"
    BUILDING = "building"
    READY = "ready"
    FAILED = "failed"


class TargetState(str, Enum):
    EMITTING = "emitting"
    WRITTEN = "written"
    WRITE_FAILED = "write_failed"


@dataclass
class TargetOutcome:
    """Result of writing one unit's bundle for one target."""

    target_id: str
    path: Path
    state: TargetState = TargetState.EMITTING
    error: Optional[WriteError] = None


@dataclass
class UnitOutcome:
    """Lifecycle of one unit: its bundle state plus every target write."""

    unit_name: str
    state: UnitState = UnitState.PENDING
    error: Optional[BundleError] = None
    targets: List[TargetOutcome] = field(default_factory=list)

    @property
    def failures(self) -> List[BuildFailure]:
        failures: List[BuildFailure] = [self.error] if self.error is not None else []
        failures.extend(target.error for target in self.targets if target.error is not None)
        return failures


@dataclass
class DeclarationOutcome:
    source_file: Path
    written: Tuple[Path, ...] = ()
    error: Optional[TypeEmitError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DistributeOutcome:
    target_id: str
    destination: Path
    error: Optional[DistributeError] = None


@dataclass
class BuildReport:
    """Everything a run produced; failures are collected, never raised."""

    units: List[UnitOutcome] = field(default_factory=list)
    entry: Optional[UnitOutcome] = None
    skipped: List[str] = field(default_factory=list)
    declarations: List[DeclarationOutcome] = field(default_factory=list)
    distributions: List[DistributeOutcome] = field(default_factory=list)

    @property
    def failures(self) -> List[BuildFailure]:
        failures: List[BuildFailure] = []
        for unit in self.units:
            failures.extend(unit.failures)
        if self.entry is not None:
            failures.extend(self.entry.failures)
        failures.extend(item.error for item in self.declarations if item.error is not None)
        failures.extend(item.error for item in self.distributions if item.error is not None)
        return failures

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def written_files(self) -> List[Path]:
        outcomes = [*self.units, *([self.entry] if self.entry is not None else [])]
        return [
            target.path
            for unit in outcomes
            for target in unit.targets
            if target.state is TargetState.WRITTEN
        ]

    def summary(self) -> List[str]:
        """Human-readable lines: one count line, then one line per failure."""
        built = sum(1 for unit in self.units if unit.state is UnitState.READY)
        lines = [
            f"Built {built}/{len(self.units)} components"
            f" ({len(self.skipped)} skipped, {len(self.written_files())} files written,"
            f" {sum(1 for item in self.declarations if item.ok)} declaration sources)"
        ]
        for failure in self.failures:
            lines.append(f"FAILED {failure.kind}: {failure}")
        return lines


__all__ = [
    "BuildReport",
    "DeclarationOutcome",
    "DistributeOutcome",
    "TargetOutcome",
    "TargetState",
    "UnitOutcome",
    "UnitState",
]
