"""Content-safety evaluation and enforcement for chat completions."""

__version__ = "0.1.0"
