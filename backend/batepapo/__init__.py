"""Presence and messaging backend for a polling chat room."""

from .main import create_app
from .service import ChatService

__version__ = "1.0.0"

__all__ = ["ChatService", "create_app"]
