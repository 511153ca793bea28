"""HTTP surface for Synapse."""

from .app import app, get_generation_client

__all__ = ["app", "get_generation_client"]
