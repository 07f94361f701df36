import io
import logging
import os
from typing import Optional

from minio import Minio
from minio.error import S3Error

from util.errors import FileStorageError
from util.repositories import FileStorageRepository

logger = logging.getLogger(__name__)


class MinioFileStorageRepository(FileStorageRepository):
    """
    Minio implementation of FileStorageRepository.
    Objects live in one bucket; the returned path is ``{url_prefix}/{name}``.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        secure: bool = False,
        bucket_name: Optional[str] = None,
        url_prefix: str = "/ProductImage",
        client: Optional[Minio] = None,
    ):
        self._endpoint = endpoint or os.environ.get("MINIO_ENDPOINT", "localhost:9000")
        self._access_key = access_key or os.environ.get("MINIO_ROOT_USER", "minioadmin")
        self._secret_key = secret_key or os.environ.get("MINIO_ROOT_PASSWORD", "minioadmin")
        self._secure = secure
        self._bucket_name = bucket_name or os.environ.get("MINIO_BUCKET_NAME", "product-images")
        self._url_prefix = url_prefix.rstrip("/")

        self._client: Optional[Minio] = client
        self._bucket_checked = False
        logger.debug(
            "MinioFileStorageRepository initialized",
            extra={
                "endpoint": self._endpoint,
                "bucket_name": self._bucket_name,
            },
        )

    async def _get_client(self) -> Minio:
        """Lazily initialize and return the Minio client."""
        if self._client is None:
            logger.debug(
                "Creating new Minio client instance",
                extra={"endpoint": self._endpoint, "secure": self._secure},
            )
            self._client = Minio(
                self._endpoint,
                access_key=self._access_key,
                secret_key=self._secret_key,
                secure=self._secure,
            )
        if not self._bucket_checked:
            try:
                if not self._client.bucket_exists(self._bucket_name):
                    logger.info(
                        "Minio bucket does not exist, creating now",
                        extra={"bucket_name": self._bucket_name},
                    )
                    self._client.make_bucket(self._bucket_name)
            except S3Error as e:
                logger.error(
                    f"Error checking or creating Minio bucket: {e}",
                    extra={"bucket_name": self._bucket_name, "error_code": e.code},
                )
                raise FileStorageError(str(e)) from e
            self._bucket_checked = True
        return self._client

    def _object_name(self, path: str) -> str:
        name = path.replace("\\", "/").rsplit("/", 1)[-1]
        if not name:
            raise FileStorageError(f"Invalid file path: {path!r}")
        return name

    async def save(self, data: bytes, name: str) -> str:
        """Upload a file to Minio storage."""
        client = await self._get_client()
        object_name = self._object_name(name)
        logger.info(
            "Uploading file to Minio",
            extra={"object_name": object_name, "size_bytes": len(data)},
        )
        try:
            client.put_object(
                self._bucket_name,
                object_name,
                io.BytesIO(data),
                len(data),
            )
        except S3Error as e:
            logger.error(
                f"Error uploading file to Minio: {e}",
                extra={"object_name": object_name, "error_code": e.code},
            )
            raise FileStorageError(str(e)) from e
        return f"{self._url_prefix}/{object_name}"

    async def delete(self, path: str) -> None:
        """Remove a file from Minio storage; missing objects are ignored."""
        client = await self._get_client()
        object_name = self._object_name(path)
        try:
            client.remove_object(self._bucket_name, object_name)
            logger.info(
                "File removed from Minio", extra={"object_name": object_name}
            )
        except S3Error as e:
            if e.code == "NoSuchKey":
                return
            logger.error(
                f"Error removing file from Minio: {e}",
                extra={"object_name": object_name, "error_code": e.code},
            )
            raise FileStorageError(str(e)) from e

    async def exists(self, path: str) -> bool:
        client = await self._get_client()
        object_name = self._object_name(path)
        try:
            client.stat_object(self._bucket_name, object_name)
            return True
        except S3Error as e:
            if e.code == "NoSuchKey":
                return False
            logger.error(
                f"Error checking file in Minio: {e}",
                extra={"object_name": object_name, "error_code": e.code},
            )
            raise FileStorageError(str(e)) from e
