"""Bundling: one parse/transform/link pass per unit."""

from .builder import BundleBuilder
from .graph import BundleGraph, EntryExports, ModuleLink, ModuleRecord
from .resolver import ModuleResolver

__all__ = [
    "BundleBuilder",
    "BundleGraph",
    "EntryExports",
    "ModuleLink",
    "ModuleRecord",
    "ModuleResolver",
]
