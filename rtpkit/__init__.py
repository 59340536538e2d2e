"""Building blocks for real-time media streams."""

__version__ = "0.1.0"