"""Synchronize remote projects (instructions, knowledge files, chats) with a local workspace."""

__version__ = "0.1.0"
