"""Fetch weather forecasts, print them, and keep a history of them in a database."""

__version__ = "0.1.0"

__all__ = ["__version__"]