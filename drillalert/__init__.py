"""School drill alerts: drill lifecycle, live notification and parent SMS."""

__version__ = "1.0.0"
