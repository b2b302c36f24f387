"""Climbing condition assessments kept fresh from upstream weather data."""

__version__ = "0.1.0"
