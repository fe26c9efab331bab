"""Lyrics resolution services: library index, artifact store, resolver."""

from .library import Library
from .resolver import LOCAL_PROVIDER, Resolver
from .store import StoredArtifact, Store

__all__ = ["Library", "LOCAL_PROVIDER", "Resolver", "StoredArtifact", "Store"]
