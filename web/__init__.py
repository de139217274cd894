"""MindSage JSON web API (presentation boundary over the session manager)."""

__version__ = "1.0.0"
