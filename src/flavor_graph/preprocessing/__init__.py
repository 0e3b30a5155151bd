"""Preprocessing pipeline stages."""

from . import ingest

__all__ = ["ingest"]
