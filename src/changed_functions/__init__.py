"""Decide which serverless functions a commit range affects."""

__version__ = "0.1.0"
