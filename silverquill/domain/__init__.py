"""Domain layer for the SilverQuill reading journal."""
