"""Cooklang recipe diagnostics, analysis options and configurable unit conversion."""

__version__ = "0.17.11"

__all__ = ["builder", "checks", "converter", "error", "units", "units_file"]