"""
Local filesystem implementation of FileStorageRepository.
"""

import logging
import os
from pathlib import Path
from typing import Union

from util.errors import FileStorageError
from util.repositories import FileStorageRepository

logger = logging.getLogger(__name__)


class LocalFileStorageRepository(FileStorageRepository):
    """
    Stores files in a directory on the local filesystem.

    Paths handed out look like ``{url_prefix}/{name}`` so they can be served
    as static URLs; only the final path component is used to locate the file
    on disk, which keeps every file inside ``root_dir``.
    """

    def __init__(
        self, root_dir: Union[str, Path], url_prefix: str = "/ProductImage"
    ) -> None:
        self._root_dir = Path(root_dir)
        self._url_prefix = url_prefix.rstrip("/")
        logger.debug(
            "LocalFileStorageRepository initialized",
            extra={
                "root_dir": str(self._root_dir),
                "url_prefix": self._url_prefix,
            },
        )

    def _resolve(self, path: str) -> Path:
        name = os.path.basename(path.replace("\\", "/"))
        if not name or name in (".", ".."):
            raise FileStorageError(f"Invalid file path: {path!r}")
        return self._root_dir / name

    async def save(self, data: bytes, name: str) -> str:
        """Write a file into the storage directory."""
        target = self._resolve(name)
        logger.info(
            "Saving file to local storage",
            extra={"file_name": target.name, "size_bytes": len(data)},
        )
        try:
            self._root_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            logger.error(
                "Failed to save file to local storage",
                extra={"file_name": target.name, "error": str(e)},
                exc_info=True,
            )
            raise FileStorageError(f"Failed to save {target.name}: {e}") from e
        return f"{self._url_prefix}/{target.name}"

    async def delete(self, path: str) -> None:
        """Remove a file from the storage directory if present."""
        target = self._resolve(path)
        try:
            target.unlink()
            logger.info(
                "File deleted from local storage",
                extra={"file_name": target.name},
            )
        except FileNotFoundError:
            logger.debug(
                "File already absent from local storage",
                extra={"file_name": target.name},
            )
        except OSError as e:
            logger.error(
                "Failed to delete file from local storage",
                extra={"file_name": target.name, "error": str(e)},
                exc_info=True,
            )
            raise FileStorageError(
                f"Failed to delete {target.name}: {e}"
            ) from e

    async def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()
