"""Tasky: local-first task manager with an AI assistant."""

__version__ = "0.1.0"
