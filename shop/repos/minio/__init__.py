"""Minio implementations of shop repositories."""

from .unit_of_work import MinioRowStore, MinioUnitOfWork

__all__ = ["MinioRowStore", "MinioUnitOfWork"]
