"""Reduce a week of news-feed articles into one executive brief with OpenAI."""

__all__ = ["config", "models", "pipeline"]
