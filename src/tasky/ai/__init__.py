"""AI assistant layer: tool helpers, usage tracking and the tool registry."""
