"""Calmly conversational session subsystem."""

__version__ = "0.1.0"
