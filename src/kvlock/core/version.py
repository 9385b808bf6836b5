"""Version information for kvlock."""

__version__ = "1.0.0"
