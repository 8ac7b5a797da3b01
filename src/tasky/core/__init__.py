"""Core services: ports, notifications, undo, chat session and app state."""
