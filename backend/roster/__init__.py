"""Student submission roster service."""

__version__ = "1.0.0"
