"""
Memory implementation of the shop unit of work.

This module provides an in-memory RowStore (``MemoryDatabase``) and a
``MemoryUnitOfWork`` bound to it. The database plays the role of the
relational store: it outlives units of work and is shared between them,
while each unit of work keeps its own staged writes. Rows are kept as JSON
strings so that reads always return fresh objects, exactly as a real store
would.

This provides a lightweight, dependency-free option for testing and local
development while maintaining the same interface as the Minio backend.
"""

import logging
from typing import Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from shop.repos.staged import RowStore, StagedUnitOfWork, row_json

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class MemoryDatabase(RowStore):
    """Committed rows held in dictionaries, one per table."""

    def __init__(self) -> None:
        self._tables: Dict[str, Dict[int, str]] = {}
        self._sequences: Dict[str, int] = {}
        logger.debug("Initializing MemoryDatabase")

    def _table(self, table: str) -> Dict[int, str]:
        return self._tables.setdefault(table, {})

    async def load(self, table: str, model: Type[T]) -> List[T]:
        rows = self._table(table)
        return [model.model_validate_json(rows[key]) for key in sorted(rows)]

    async def get(
        self, table: str, model: Type[T], entity_id: int
    ) -> Optional[T]:
        row = self._table(table).get(entity_id)
        if row is None:
            return None
        return model.model_validate_json(row)

    async def write(self, table: str, entity: BaseModel) -> None:
        entity_id = entity.id  # type: ignore[attr-defined]
        self._table(table)[entity_id] = row_json(table, entity)
        # Keep the sequence ahead of explicitly chosen ids
        if entity_id > self._sequences.get(table, 0):
            self._sequences[table] = entity_id

    async def remove(self, table: str, entity_id: int) -> None:
        self._table(table).pop(entity_id, None)

    async def next_id(self, table: str) -> int:
        self._sequences[table] = self._sequences.get(table, 0) + 1
        return self._sequences[table]

    def row_count(self, table: str) -> int:
        return len(self._table(table))


class MemoryUnitOfWork(StagedUnitOfWork):
    """
    Unit of work over a MemoryDatabase.

    Each instance gets a private database unless one is passed in; share a
    database between instances to model several requests against one store.
    """

    def __init__(self, database: Optional[MemoryDatabase] = None) -> None:
        self.database = database if database is not None else MemoryDatabase()
        super().__init__(self.database)
