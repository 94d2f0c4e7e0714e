"""Bundle serialisation and size reporting."""

from .reporter import SizeObservation, SizeReporter, format_size
from .writer import OutputWriter

__all__ = ["OutputWriter", "SizeObservation", "SizeReporter", "format_size"]
