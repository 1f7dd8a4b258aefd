"""Personal reading tracker service."""

__version__ = "0.1.0"
