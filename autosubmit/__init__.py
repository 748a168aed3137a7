"""Queue-driven proposal auto-submitter."""

__version__ = "0.3.0"
