"""tasktrack: a small task API backed by one locked JSON file."""

__version__ = "0.1.0"
