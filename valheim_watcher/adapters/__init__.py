"""Notification sink adapters."""
from .base import SinkAdapter
from .memory import InMemoryAdapter
from .messages import render_message

__all__ = ["SinkAdapter", "InMemoryAdapter", "render_message"]
