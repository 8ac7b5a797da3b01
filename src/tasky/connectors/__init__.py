"""Connectors: how users talk to the assistant (console) and how background messages go out."""
