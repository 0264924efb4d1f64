"""Weekly movie club coordination service."""

__version__ = "1.0.0"
