"""User context memory: what the assistant remembers about the user."""
