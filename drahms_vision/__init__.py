"""Drahms Vision multi-provider identification engine."""

__version__ = "2.0.0"
