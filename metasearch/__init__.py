"""Cost-aware tiered meta-search."""

__version__ = "0.1.0"
