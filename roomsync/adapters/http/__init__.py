"""HTTP adapters for the typed API."""

from .client import HttpSyncTransport

__all__ = ["HttpSyncTransport"]
