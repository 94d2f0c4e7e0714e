"""Copies staged declarations into every output target."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import List, Sequence

from .errors import DistributeError
from .logging import get_logger
from .models import OutputTarget
from .report import DistributeOutcome


class Distributor:
    """Merges the staging tree into ``<output_dir>/components`` of each target.

    Callers must only invoke ``distribute`` after every declaration task has
    resolved; file contents are copied unchanged.
    """

    def __init__(self) -> None:
        self.logger = get_logger("distributor")

    async def distribute(self, staging: Path, targets: Sequence[OutputTarget]) -> List[DistributeOutcome]:
        if not staging.is_dir():
            self.logger.info("No staged declarations under %s", staging)
            return []
        loop = asyncio.get_running_loop()
        results = await asyncio.gather(
            *(loop.run_in_executor(None, self._copy, staging, target) for target in targets),
            return_exceptions=True,
        )
        outcomes: List[DistributeOutcome] = []
        for target, result in zip(targets, results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            destination = target.declarations_dir()
            if isinstance(result, Exception):
                error = DistributeError(target.id, f"{result.__class__.__name__}: {result}")
                self.logger.error("%s", error)
                outcomes.append(DistributeOutcome(target_id=target.id, destination=destination, error=error))
            else:
                outcomes.append(DistributeOutcome(target_id=target.id, destination=destination))
        return outcomes

    def _copy(self, staging: Path, target: OutputTarget) -> Path:
        destination = target.declarations_dir()
        shutil.copytree(staging, destination, dirs_exist_ok=True)
        self.logger.debug("Copied declarations into %s", destination)
        return destination


__all__ = ["Distributor"]
