"""Survey analytics API."""

__version__ = "1.0.0"
