"""Read versioned migrations from sources and run them against databases."""

__version__ = "4.0.0"