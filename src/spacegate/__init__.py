"""spacegate - per-space API keys and an OpenAI-compatible gateway over Gemini File Search."""

__version__ = "0.1.0"
