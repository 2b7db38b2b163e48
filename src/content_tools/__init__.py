"""Package for researching, outlining and writing blog articles with OpenRouter models."""

__all__ = ["config", "models", "normalizer", "workflow"]
