"""Persistência do estado entre runs (Hash Store)."""

from .hash_store import HashRecord, HashStore, HashStoreCorruptedError

__all__ = ["HashRecord", "HashStore", "HashStoreCorruptedError"]
