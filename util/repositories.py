"""
Repository interfaces for file storage, defined as Protocols.

A file store holds opaque blobs addressed by a path string. The path is what
callers persist (for example as a product's ``image_url``); it is returned by
``save`` and accepted by ``delete`` and ``exists``.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class FileStorageRepository(Protocol):
    """Stores, removes and checks files by path."""

    async def save(self, data: bytes, name: str) -> str:
        """Write ``data`` under ``name`` and return the stored path.

        Implementation Notes:
        - Must overwrite an existing file with the same name
        - Must raise util.errors.FileStorageError if the store rejects the
          write
        """
        ...

    async def delete(self, path: str) -> None:
        """Remove the file at ``path``.

        Implementation Notes:
        - Must be idempotent: deleting a missing file is not an error
        """
        ...

    async def exists(self, path: str) -> bool:
        """Return True if a file is stored at ``path``."""
        ...
