"""Minio implementation of file storage."""

from .file_storage import MinioFileStorageRepository

__all__ = ["MinioFileStorageRepository"]
