"""Memoir - shared memory detection and collaborative stories."""

__version__ = "0.1.0"
