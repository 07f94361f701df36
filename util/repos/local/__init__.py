"""Local filesystem implementation of file storage."""

from .file_storage import LocalFileStorageRepository

__all__ = ["LocalFileStorageRepository"]
