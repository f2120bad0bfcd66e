"""Hash-based cut sheet cache and manifest reconciliation."""

__version__ = "0.3.0"
