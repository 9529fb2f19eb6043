"""SilverQuill reading journal: offline asset cache and sync core."""

__version__ = "0.1.0"
