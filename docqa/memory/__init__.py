"""Conversation memory management."""
from docqa.memory.session import ChatSession

__all__ = ["ChatSession"]
