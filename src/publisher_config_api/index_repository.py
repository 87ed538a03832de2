"""
Access to the publisher index (``publishers.json``).

The index is the ordered list of publisher metadata shown by the front-end.
It is always read and written as a whole document; at tens to low hundreds
of entries there is nothing to gain from partial updates.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Tuple

import pyuca
from pydantic import ValidationError as PydanticValidationError

from .errors import IndexCorruptionError
from .models import PublisherIndex, PublisherListItem
from .utils import dump_json, read_text, write_text_atomic

logger = logging.getLogger(__name__)

INDEX_FILENAME = "publishers.json"


@lru_cache(maxsize=1)
def _collator() -> pyuca.Collator:
    # Loads the Unicode collation element table once per process.
    return pyuca.Collator()


def alias_sort_key(alias: str) -> Tuple[int, ...]:
    """Unicode Collation Algorithm key, so "Ångström" sorts with the A's."""
    return _collator().sort_key(alias)


def sort_entries(entries: Iterable[PublisherListItem]) -> List[PublisherListItem]:
    """Order entries by alias; ties keep their current relative order."""
    return sorted(entries, key=lambda entry: alias_sort_key(entry.alias))


class IndexRepository:
    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir
        self.path = data_dir / INDEX_FILENAME

    async def read(self) -> PublisherIndex:
        """
        Load and structurally validate the index.

        Returns:
            The parsed index with entries in file order

        Raises:
            IndexCorruptionError: If the file is missing, not JSON, or not
                shaped like ``{"publishers": [{id, alias, file}, ...]}``
        """
        try:
            raw = await read_text(self.path)
        except FileNotFoundError as exc:
            logger.error(f"Publisher index missing at {self.path}")
            raise IndexCorruptionError("Publisher index is missing", details=str(exc)) from exc

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error(f"Publisher index at {self.path} is not valid JSON: {exc}")
            raise IndexCorruptionError("Publisher index is corrupted", details=str(exc)) from exc

        if not isinstance(data, dict) or not isinstance(data.get("publishers"), list):
            logger.error(f"Publisher index at {self.path} has no publishers list")
            raise IndexCorruptionError("Publisher index is corrupted", details="'publishers' must be a list")

        try:
            return PublisherIndex.model_validate(data)
        except PydanticValidationError as exc:
            logger.error(f"Publisher index at {self.path} has malformed entries: {exc}")
            raise IndexCorruptionError("Publisher index is corrupted", details=str(exc)) from exc

    async def write(self, index: PublisherIndex) -> None:
        await write_text_atomic(self.path, dump_json(index.model_dump()))

    def initialize(self) -> bool:
        """
        Create an empty index if none exists. Called once at startup, before
        the event loop serves requests.

        Returns:
            True when a new index file was written
        """
        if self.path.exists():
            return False
        self.path.write_text(dump_json(PublisherIndex().model_dump()), encoding="utf-8")
        logger.info(f"Created empty publisher index at {self.path}")
        return True
