"""Per-target rewriting of internal package specifiers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .models import OutputTarget


@dataclass(frozen=True)
class Rewrite:
    """A replacement specifier; an empty ``path`` rewrites to the target root."""

    path: str


PathRewriter = Callable[[str], Optional[Rewrite]]


@dataclass(frozen=True)
class RewriteRule:
    """Replaces ``match_prefix`` with the target's bundle path for internal packages.

    ``entry`` rules serve the aggregate entry, which sits one directory above
    the per-component outputs.
    """

    match_prefix: str
    target: OutputTarget
    entry: bool = False

    def apply(self, specifier: str, internal_packages: Iterable[str]) -> Optional[Rewrite]:
        if not specifier.startswith(f"{self.match_prefix}/"):
            return None
        if not self.match_prefix or not is_internal(specifier, internal_packages):
            return None
        remainder = specifier[len(self.match_prefix):]
        base = (self.target.entry_bundle_path() if self.entry else self.target.bundle_path).rstrip("/")
        if not base:
            return Rewrite(remainder.lstrip("/"))
        return Rewrite(f"{base}{remainder}")


def is_internal(specifier: str, internal_packages: Iterable[str]) -> bool:
    return any(
        specifier == package or specifier.startswith(f"{package}/")
        for package in internal_packages
    )


def make_path_rewriter(
    target: OutputTarget,
    namespace: Optional[str],
    internal_packages: frozenset[str],
    *,
    entry: bool = False,
) -> PathRewriter:
    """Return the rewrite function for one target's component or entry outputs."""
    rule = RewriteRule(match_prefix=(namespace or "").rstrip("/"), target=target, entry=entry)

    def rewrite(specifier: str) -> Optional[Rewrite]:
        return rule.apply(specifier, internal_packages)

    return rewrite


def identity_rewriter(specifier: str) -> Optional[Rewrite]:
    return None


def resolve_specifier(rewriter: PathRewriter, specifier: str) -> str:
    """Apply ``rewriter`` and fall back to the untouched specifier on no match."""
    result = rewriter(specifier)
    return specifier if result is None else result.path


__all__ = [
    "PathRewriter",
    "Rewrite",
    "RewriteRule",
    "identity_rewriter",
    "is_internal",
    "make_path_rewriter",
    "resolve_specifier",
]
