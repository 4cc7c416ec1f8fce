"""Frozen protein pricing desk — delivered pricing, reefer freight and AI-assisted parsing."""

__version__ = "1.0.0"
