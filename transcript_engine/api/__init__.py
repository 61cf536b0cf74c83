"""HTTP API for transcription, call analysis and transcript export."""

from .app import create_app

__all__ = ["create_app"]
