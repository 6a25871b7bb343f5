"""Tarot draws with Gemini interpretations."""

__version__ = "0.1.0"
