"""Madspild: find nearby food-waste clearance offers and filter them by product."""

__version__ = "0.1.0"
