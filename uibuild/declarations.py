"""Declaration emission for top-level entry sources."""

from __future__ import annotations

import asyncio
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Protocol, Sequence

from .errors import TypeEmitError
from .logging import get_logger
from .models import DeclarationUnit
from .report import DeclarationOutcome

Runner = Callable[..., subprocess.CompletedProcess]

_TSC_FLAGS = (
    "--declaration",
    "--emitDeclarationOnly",
    "--noEmitOnError",
    "false",
    "--skipLibCheck",
    "--esModuleInterop",
    "--allowJs",
    "--target",
    "ESNext",
    "--downlevelIteration",
    "--noResolve",
    "--pretty",
    "false",
)

# tsc exits with 2 when it reports diagnostics but still writes its outputs.
_OK_EXIT_CODES = (0, 2)


class DeclarationCompileError(RuntimeError):
    """Raised when the compiler cannot produce declarations for a source file."""


class DeclarationCompiler(Protocol):
    def compile(self, source: Path) -> DeclarationUnit:
        ...


class TscDeclarationCompiler:
    """Runs ``tsc`` in a private output directory and keeps the file's own declarations."""

    def __init__(self, root: Path, tsc: Path | None = None, runner: Runner | None = None) -> None:
        self.root = root
        self.tsc = tsc
        self._runner = runner or self._default_runner
        self.logger = get_logger("declarations")

    def command(self) -> List[str]:
        if self.tsc is not None:
            return [str(self.tsc)]
        local = self.root / "node_modules" / ".bin" / "tsc"
        if local.is_file():
            return [str(local)]
        found = shutil.which("tsc")
        if found:
            return [found]
        raise DeclarationCompileError("tsc not found; install typescript or set types.tsc in uibuild.yml")

    def compile(self, source: Path) -> DeclarationUnit:
        with tempfile.TemporaryDirectory(prefix="uibuild-dts-") as tmp:
            out_dir = Path(tmp)
            args = [*self.command(), *_TSC_FLAGS, "--outDir", str(out_dir), str(source)]
            completed = self._runner(args, cwd=self.root)
            if completed.returncode not in _OK_EXIT_CODES:
                raise DeclarationCompileError(
                    f"tsc exited with status {completed.returncode}: {_tail(completed)}"
                )
            if completed.returncode:
                self.logger.debug("tsc reported diagnostics for %s: %s", source.name, _tail(completed))
            prefix = f"{source.stem}.d."
            emitted = sorted(
                path for path in out_dir.rglob("*") if path.is_file() and path.name.startswith(prefix)
            )
            if not emitted:
                raise DeclarationCompileError(f"tsc produced no declarations for {source.name}")
            texts = tuple(
                (path.relative_to(out_dir).as_posix(), path.read_text(encoding="utf-8")) for path in emitted
            )
        return DeclarationUnit(source_file=source, emitted_texts=texts)

    @staticmethod
    def _default_runner(args: Iterable[str], *, cwd: Path) -> subprocess.CompletedProcess:
        return subprocess.run(
            list(args),
            cwd=str(cwd),
            check=False,
            text=True,
            capture_output=True,
        )


class TypeEmitter:
    """Emits declarations for every entry source into the staging tree.

    The staging directory is cleared at the start of each run. Every alias token in
    the emitted text is replaced with ``.`` before it is written.
    """

    def __init__(self, compiler: DeclarationCompiler, staging_dir: Path, alias_token: Optional[str]) -> None:
        self.compiler = compiler
        self.staging_dir = staging_dir
        self.alias_token = alias_token or ""
        self.logger = get_logger("declarations")

    async def emit_all(self, sources: Sequence[Path]) -> List[DeclarationOutcome]:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._reset_staging)
        results = await asyncio.gather(
            *(self.emit_file(source) for source in sources), return_exceptions=True
        )
        outcomes: List[DeclarationOutcome] = []
        for source, result in zip(sources, results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, TypeEmitError):
                self.logger.error("%s", result)
                outcomes.append(DeclarationOutcome(source_file=source, error=result))
            elif isinstance(result, Exception):
                error = TypeEmitError(source, f"{result.__class__.__name__}: {result}")
                self.logger.error("%s", error)
                outcomes.append(DeclarationOutcome(source_file=source, error=error))
            else:
                outcomes.append(DeclarationOutcome(source_file=source, written=tuple(result)))
        return outcomes

    async def emit_file(self, source: Path) -> List[Path]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._emit_sync, source)
        except (DeclarationCompileError, OSError, subprocess.SubprocessError, UnicodeDecodeError) as exc:
            raise TypeEmitError(source, str(exc)) from exc

    def _emit_sync(self, source: Path) -> List[Path]:
        self.logger.info("Emitting declarations for %s", source.name)
        unit = self.compiler.compile(source).rewritten(self.alias_token, ".")
        written: List[Path] = []
        for relative, text in unit.emitted_texts:
            destination = self.staging_dir / relative
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_text(text, encoding="utf-8")
            written.append(destination)
            self.logger.info("Definition for file: %s generated", relative)
        return written

    def _reset_staging(self) -> None:
        if self.staging_dir.exists():
            shutil.rmtree(self.staging_dir)
        self.staging_dir.mkdir(parents=True, exist_ok=True)


def _tail(completed: subprocess.CompletedProcess, limit: int = 400) -> str:
    output = "\n".join(part for part in (completed.stdout, completed.stderr) if part).strip()
    return output[-limit:] if output else "(no output)"


__all__ = [
    "DeclarationCompileError",
    "DeclarationCompiler",
    "Runner",
    "TscDeclarationCompiler",
    "TypeEmitter",
]
