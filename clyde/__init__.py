"""Clyde: a command-line coding agent backed by Claude."""

__version__ = "0.1.0"
