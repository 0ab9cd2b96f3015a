"""Pine AI voice call plugin."""

__version__ = "0.1.0"
