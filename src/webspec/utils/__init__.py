"""Utility exports for filesystem and hashing helpers."""

from webspec.utils.fs import atomic_write, is_within, resolve_within
from webspec.utils.hashing import sha256_bytes, sha256_text

__all__ = [
    "atomic_write",
    "is_within",
    "resolve_within",
    "sha256_bytes",
    "sha256_text",
]
