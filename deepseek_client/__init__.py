"""Request building, response parsing, JSON extraction, token estimation, image messages and Ollama chat for DeepSeek-compatible APIs."""

__version__ = "0.1.0"