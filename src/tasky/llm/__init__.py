"""LLM clients: OpenRouter (OpenAI-compatible) streaming and an offline fallback."""
