"""Realtime voice conversation client: messages, audio buffers, conversation state and a console front end."""

__version__ = "0.1.0"
__all__ = ["__version__"]