"""Build component libraries into per-target bundles and type declarations."""

__version__ = "0.1.0"
