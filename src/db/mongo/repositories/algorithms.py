from __future__ import annotations

import logging
from typing import Any

from pymongo.errors import PyMongoError

from src.domain.errors import StoreError

logger = logging.getLogger(__name__)


class AlgorithmDirectory:
    """Algorithm id -> name, read in full once per run."""

    def __init__(self, collection: Any) -> None:
        self.collection = collection

    def load(self) -> dict[str, str]:
        directory: dict[str, str] = {}
        try:
            for doc in self.collection.find({}, {"_id": 1, "name": 1}):
                algorithm_id = doc.get("_id")
                name = doc.get("name")
                if algorithm_id is None or not isinstance(name, str) or not name.strip():
                    logger.warning(f"Skipping malformed algorithm record: {doc!r}")
                    continue
                directory[str(algorithm_id)] = name
        except PyMongoError as e:
            raise StoreError(f"Failed to load algorithms: {e}") from e

        logger.info("Loaded %d algorithms", len(directory))
        return directory
