"""Materialização atômica de secrets no filesystem."""

from .materializer import FileMaterializer, Snapshot, read_metadata, resolve_gid, resolve_uid

__all__ = ["FileMaterializer", "Snapshot", "read_metadata", "resolve_gid", "resolve_uid"]
