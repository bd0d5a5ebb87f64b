# claimease/storage/base.py
"""
JSON-file document collections.

Each collection lives in ``<DATA_DIR>/<collection>/<collection>.json`` as a
mapping of id to document. The file is read once and cached; every write
replaces the whole file under the collection lock.
"""

import json
import os
import threading
import time
from pathlib import Path
from typing import Generic, TypeVar, Optional, List, Dict, Any, Callable, Tuple, Type

from pydantic import BaseModel, ValidationError

from claimease.core.config import settings
from claimease.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class BaseStore(Generic[T]):
    """Collection of one pydantic document type keyed by ``id_field``."""

    collection: str = "documents"
    model: Type[T]
    id_field: str = "id"

    def __init__(self, data_dir: Optional[str] = None):
        directory = Path(data_dir or Path(settings.DATA_DIR) / self.collection)
        directory.mkdir(parents=True, exist_ok=True)
        self.filepath = directory / f"{self.collection}.json"
        self._documents: Dict[str, T] = {}
        self._loaded = False
        self._lock = threading.RLock()

    def key_of(self, entity: T) -> str:
        return getattr(entity, self.id_field)

    def _read_file(self) -> Dict[str, Any]:
        if not self.filepath.exists():
            return {}
        try:
            with open(self.filepath, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Unreadable collection file {self.filepath}: {e}", collection=self.collection)
            return {}

    def _write_file(self):
        start = time.perf_counter()
        documents = {key: entity.model_dump(mode="json") for key, entity in self._documents.items()}
        tmp_path = self.filepath.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(documents, f, indent=2)
            os.replace(tmp_path, self.filepath)
        except OSError as e:
            logger.error(f"Could not write {self.filepath}: {e}", collection=self.collection)
            raise
        logger.log_database("write", self.collection, (time.perf_counter() - start) * 1000,
                            count=len(documents))

    def _all(self) -> Dict[str, T]:
        with self._lock:
            if not self._loaded:
                for key, document in self._read_file().items():
                    try:
                        self._documents[key] = self.model.model_validate(document)
                    except ValidationError as e:
                        logger.error(f"Skipping invalid document {key}: {e}", collection=self.collection)
                self._loaded = True
        return self._documents

    # ===================
    # Reads
    # ===================

    def get(self, entity_id: str) -> Optional[T]:
        return self._all().get(entity_id)

    def get_all(self) -> List[T]:
        with self._lock:
            return list(self._all().values())

    def exists(self, entity_id: str) -> bool:
        return entity_id in self._all()

    def count(self) -> int:
        return len(self._all())

    def find(self, predicate: Callable[[T], bool]) -> List[T]:
        """All entities for which ``predicate`` is true."""
        return [e for e in self.get_all() if predicate(e)]

    def find_one(self, predicate: Callable[[T], bool]) -> Optional[T]:
        return next((e for e in self.get_all() if predicate(e)), None)

    def query(self, filters: Dict[str, Any]) -> List[T]:
        """Exact matches on the JSON form of each document."""
        return self.find(lambda e: all(
            e.model_dump(mode="json").get(field) == value for field, value in filters.items()
        ))

    # ===================
    # Writes
    # ===================

    def save(self, entity: T) -> T:
        """Insert or replace."""
        key = self.key_of(entity)
        with self._lock:
            self._all()[key] = entity
            self._write_file()
        logger.debug(f"Saved {key}", collection=self.collection)
        return entity

    def delete(self, entity_id: str) -> bool:
        with self._lock:
            documents = self._all()
            if documents.pop(entity_id, None) is None:
                return False
            self._write_file()
        logger.info(f"Deleted {entity_id}", collection=self.collection)
        return True

    @staticmethod
    def paginate(
        results: List[Any],
        sort_key: Callable[[Any], Any],
        descending: bool = True,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[Any], int]:
        """Sort and slice a result list; returns ``(page_items, total)``."""
        ordered = sorted(results, key=sort_key, reverse=descending)
        skip = (page - 1) * limit
        return ordered[skip:skip + limit], len(results)
