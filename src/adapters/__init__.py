"""
Adapters package
----------------

Storage abstraction so the convergence pipeline runs unchanged on the
local filesystem and on S3.
"""

from .storage import (  # noqa: F401
    LocalStorageAdapter,
    S3StorageAdapter,
    StorageAdapter,
)

__all__ = [
    "StorageAdapter",
    "LocalStorageAdapter",
    "S3StorageAdapter",
]
