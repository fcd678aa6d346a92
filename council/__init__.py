"""Unified AI Council: fan one request out to several CLI agents and merge the answers."""

__version__ = "0.3.0"
