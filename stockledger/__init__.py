"""Stock snapshot and recalculation engine."""

__version__ = "1.0.0"
