"""Valheim dedicated server log watcher."""
__version__ = "0.1.0"
