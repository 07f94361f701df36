"""
Minio implementation of the shop unit of work.

Each table is a bucket and each row an object named ``{id}.json`` holding
the entity's JSON dump. A commit writes objects one after another; Minio
offers no multi-object transaction, so a failure part-way through leaves the
earlier writes of that commit in place.
"""

import io
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set, Type, TypeVar

from minio import Minio
from minio.error import S3Error
from pydantic import BaseModel

from shop.errors import StoreError
from shop.repos.staged import (
    CATEGORIES,
    ORDER_DETAILS,
    ORDER_HEADERS,
    PRODUCTS,
    RowStore,
    StagedUnitOfWork,
    row_json,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

TABLES = (CATEGORIES, PRODUCTS, ORDER_HEADERS, ORDER_DETAILS)

# Highest id handed out per table; not a row since its stem is not numeric.
SEQUENCE_OBJECT = "_sequence"


class MinioRowStore(RowStore):
    """
    Minio implementation of RowStore.
    Uses one bucket per table for persistence of entity rows.
    """

    def __init__(
        self,
        endpoint: str = "localhost:9000",
        access_key: str = "minioadmin",
        secret_key: str = "minioadmin",
        secure: bool = False,
        bucket_prefix: str = "shop",
        client: Optional[Minio] = None,
    ) -> None:
        logger.debug(
            "Initializing MinioRowStore",
            extra={"minio_endpoint": endpoint, "bucket_prefix": bucket_prefix},
        )
        self.client = client or Minio(
            endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
        )
        self.bucket_prefix = bucket_prefix
        self._ready_buckets: Set[str] = set()

    def bucket_name(self, table: str) -> str:
        return f"{self.bucket_prefix}-{table.replace('_', '-')}"

    def _ensure_bucket_exists(self, bucket_name: str) -> None:
        if bucket_name in self._ready_buckets:
            return
        try:
            if not self.client.bucket_exists(bucket_name):
                logger.info(
                    "Creating table bucket",
                    extra={"bucket_name": bucket_name},
                )
                self.client.make_bucket(bucket_name)
        except S3Error as e:
            logger.error(
                "Failed to create table bucket",
                extra={"bucket_name": bucket_name, "error": str(e)},
            )
            raise StoreError(f"Bucket {bucket_name} unavailable: {e}") from e
        self._ready_buckets.add(bucket_name)

    def ensure_tables(self, tables: Iterable[str] = TABLES) -> None:
        for table in tables:
            self._ensure_bucket_exists(self.bucket_name(table))

    @staticmethod
    def _object_name(entity_id: int) -> str:
        return f"{entity_id}.json"

    def _read_object(self, bucket_name: str, object_name: str) -> bytes:
        response = self.client.get_object(
            bucket_name=bucket_name, object_name=object_name
        )
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    def _row_ids(self, bucket_name: str) -> List[int]:
        ids = []
        for obj in self.client.list_objects(bucket_name):
            stem = obj.object_name.rsplit(".", 1)[0]
            if stem.isdigit():
                ids.append(int(stem))
        return sorted(ids)

    async def load(self, table: str, model: Type[T]) -> List[T]:
        bucket_name = self.bucket_name(table)
        self._ensure_bucket_exists(bucket_name)
        try:
            rows = [
                model.model_validate_json(
                    self._read_object(bucket_name, self._object_name(row_id))
                )
                for row_id in self._row_ids(bucket_name)
            ]
        except S3Error as e:
            logger.error(
                "Failed to load rows from Minio",
                extra={"bucket_name": bucket_name, "error": str(e)},
                exc_info=True,
            )
            raise StoreError(f"Failed to load {table}: {e}") from e
        logger.debug(
            "Rows loaded from Minio",
            extra={"bucket_name": bucket_name, "row_count": len(rows)},
        )
        return rows

    async def get(
        self, table: str, model: Type[T], entity_id: int
    ) -> Optional[T]:
        bucket_name = self.bucket_name(table)
        self._ensure_bucket_exists(bucket_name)
        try:
            data = self._read_object(bucket_name, self._object_name(entity_id))
        except S3Error as e:
            if getattr(e, "code", None) == "NoSuchKey":
                return None
            logger.error(
                "Failed to read row from Minio",
                extra={
                    "bucket_name": bucket_name,
                    "entity_id": entity_id,
                    "error": str(e),
                },
                exc_info=True,
            )
            raise StoreError(f"Failed to read {table}/{entity_id}: {e}") from e
        return model.model_validate_json(data)

    async def write(self, table: str, entity: BaseModel) -> None:
        bucket_name = self.bucket_name(table)
        self._ensure_bucket_exists(bucket_name)
        entity_id = entity.id  # type: ignore[attr-defined]
        payload = row_json(table, entity).encode("utf-8")
        try:
            self.client.put_object(
                bucket_name=bucket_name,
                object_name=self._object_name(entity_id),
                data=io.BytesIO(payload),
                length=len(payload),
                content_type="application/json",
                metadata={
                    "saved_at": datetime.now(timezone.utc).isoformat(),
                },
            )
        except S3Error as e:
            logger.error(
                "Failed to persist row to Minio",
                extra={
                    "bucket_name": bucket_name,
                    "entity_id": entity_id,
                    "error": str(e),
                },
                exc_info=True,
            )
            raise StoreError(f"Failed to write {table}/{entity_id}: {e}") from e
        logger.debug(
            "Row persisted to Minio",
            extra={
                "bucket_name": bucket_name,
                "entity_id": entity_id,
                "payload_size_bytes": len(payload),
            },
        )

    async def remove(self, table: str, entity_id: int) -> None:
        bucket_name = self.bucket_name(table)
        self._ensure_bucket_exists(bucket_name)
        try:
            self.client.remove_object(
                bucket_name, self._object_name(entity_id)
            )
        except S3Error as e:
            if getattr(e, "code", None) == "NoSuchKey":
                return
            logger.error(
                "Failed to remove row from Minio",
                extra={
                    "bucket_name": bucket_name,
                    "entity_id": entity_id,
                    "error": str(e),
                },
                exc_info=True,
            )
            raise StoreError(
                f"Failed to remove {table}/{entity_id}: {e}"
            ) from e

    def _read_sequence(self, bucket_name: str) -> int:
        try:
            return int(self._read_object(bucket_name, SEQUENCE_OBJECT))
        except S3Error as e:
            if getattr(e, "code", None) == "NoSuchKey":
                return 0
            raise

    async def next_id(self, table: str) -> int:
        """
        Hand out the next id of ``table``.

        The highest id ever handed out is kept in a sequence object, so ids
        of deleted rows are never reused.
        """
        bucket_name = self.bucket_name(table)
        self._ensure_bucket_exists(bucket_name)
        try:
            ids = self._row_ids(bucket_name)
            entity_id = max(
                self._read_sequence(bucket_name), ids[-1] if ids else 0
            ) + 1
            payload = str(entity_id).encode("utf-8")
            self.client.put_object(
                bucket_name=bucket_name,
                object_name=SEQUENCE_OBJECT,
                data=io.BytesIO(payload),
                length=len(payload),
                content_type="text/plain",
            )
        except S3Error as e:
            logger.error(
                "Failed to advance id sequence",
                extra={"bucket_name": bucket_name, "error": str(e)},
                exc_info=True,
            )
            raise StoreError(f"Failed to reserve an id for {table}: {e}") from e
        return entity_id


class MinioUnitOfWork(StagedUnitOfWork):
    """Unit of work over a MinioRowStore."""

    def __init__(self, store: MinioRowStore) -> None:
        super().__init__(store)
