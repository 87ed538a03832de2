"""
Publisher config storage on top of a plain directory.

Each publisher lives in its own ``<name>.json`` file and has one entry in
the index. The store keeps both in step:

- create writes the file and appends the index entry
- update overwrites the file and syncs the entry's alias
- delete removes the file and drops the entry

Mutations hold the per-file lock for their whole duration, and the index
read-modify-write additionally holds the index lock when
``serialize_index_writes`` is on. Lock order is always file then index.

Reads are not locked. A GET racing a PUT sees either the old or the new
file, since writes are atomic renames.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, TypeVar

import aiofiles.os

from .audit import AuditLogger
from .errors import ConflictError, NotFoundError, StoreError
from .index_repository import INDEX_FILENAME, IndexRepository, sort_entries
from .locks import FileLockRegistry
from .models import PublisherIndex, PublisherListItem
from .utils import dump_json, read_text, write_text_atomic

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PublisherStore:
    """
    Orchestrates publisher file and index updates.

    Callers are expected to have validated the filename and the config body
    already; the store only enforces existence and uniqueness rules.

    Attributes:
        data_dir: Directory holding the index and every publisher file
        index: Repository for ``publishers.json``
        locks: Per-key lock registry shared by every mutation
    """

    def __init__(
        self,
        data_dir: Path,
        locks: FileLockRegistry,
        audit: AuditLogger,
        serialize_index_writes: bool = True,
    ) -> None:
        self.data_dir = data_dir
        self.index = IndexRepository(data_dir)
        self.locks = locks
        self.audit = audit
        self.serialize_index_writes = serialize_index_writes

    def path_for(self, filename: str) -> Path:
        return self.data_dir / filename

    async def _with_index_lock(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self.serialize_index_writes:
            return await self.locks.with_lock(INDEX_FILENAME, operation)
        return await operation()

    # --- Reads ---

    async def list_index(self) -> PublisherIndex:
        return await self.index.read()

    async def get(self, filename: str) -> Any:
        """
        Load one publisher config.

        Raises:
            NotFoundError: If the file does not exist
            StoreError: If the file cannot be read or is not valid JSON
        """
        path = self.path_for(filename)
        try:
            raw = await read_text(path)
        except FileNotFoundError as exc:
            raise NotFoundError("Publisher config not found") from exc
        except OSError as exc:
            raise StoreError("Failed to read publisher config", details=str(exc)) from exc

        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error(f"Publisher config {filename} is not valid JSON: {exc}")
            raise StoreError("Failed to read publisher config", details=str(exc)) from exc

    # --- Mutations ---

    async def _ensure_file_absent(self, filename: str) -> None:
        if await aiofiles.os.path.exists(self.path_for(filename)):
            raise ConflictError(f"Publisher config {filename} already exists")

    @staticmethod
    def _ensure_id_unused(index: PublisherIndex, publisher_id: str) -> None:
        for entry in index.publishers:
            if entry.id == publisher_id:
                raise ConflictError(f"Publisher id {publisher_id} is already registered in {entry.file}")

    async def create(self, filename: str, config: Dict[str, Any]) -> None:
        """
        Create a publisher file and its index entry.

        Both uniqueness checks run once up front and again after the lock is
        acquired; the second check is the one that counts when two requests
        race.

        Raises:
            ConflictError: If the file or the publisher id already exists
        """
        publisher_id = config["publisherId"]
        alias = config["aliasName"]
        path = self.path_for(filename)

        async def _register() -> None:
            index = await self.index.read()
            self._ensure_id_unused(index, publisher_id)

            await write_text_atomic(path, dump_json(config))
            index.publishers.append(PublisherListItem(id=publisher_id, alias=alias, file=filename))
            index.publishers = sort_entries(index.publishers)
            try:
                await self.index.write(index)
            except Exception:
                # A config file without an index entry is treated as corruption.
                await self._discard(path)
                raise

        async def _create() -> None:
            await self._ensure_file_absent(filename)
            await self._with_index_lock(_register)

        try:
            await self._ensure_file_absent(filename)
            self._ensure_id_unused(await self.index.read(), publisher_id)
            await self.locks.with_lock(filename, _create)
        except ConflictError as exc:
            self.audit.log("CREATE_CONFLICT", {"filename": filename, "publisherId": publisher_id, "reason": exc.message})
            raise

        logger.info(f"Created publisher {publisher_id} in {filename}")
        self.audit.log("CREATE", {"filename": filename, "publisherId": publisher_id, "aliasName": alias})

    async def update(self, filename: str, config: Dict[str, Any]) -> None:
        """
        Overwrite a publisher file and sync its alias into the index.

        The file is written even when the index has no entry for it; the
        file content is authoritative and the index is secondary metadata.
        The index is only re-sorted and rewritten when the alias changed.
        """
        alias = config["aliasName"]
        path = self.path_for(filename)

        async def _sync_index() -> bool:
            index = await self.index.read()
            entry = next((item for item in index.publishers if item.file == filename), None)
            if entry is None:
                logger.warning(f"Updated {filename} but it has no entry in the publisher index")
                return False
            if entry.alias == alias:
                return False
            entry.alias = alias
            index.publishers = sort_entries(index.publishers)
            await self.index.write(index)
            return True

        async def _update() -> bool:
            await write_text_atomic(path, dump_json(config))
            return await self._with_index_lock(_sync_index)

        alias_changed = await self.locks.with_lock(filename, _update)

        logger.info(f"Updated publisher config {filename}")
        self.audit.log(
            "UPDATE",
            {"filename": filename, "publisherId": config.get("publisherId"), "aliasChanged": alias_changed},
        )

    async def delete(self, filename: str) -> None:
        """
        Remove a publisher file and every index entry pointing at it.

        Raises:
            NotFoundError: If the file does not exist
        """
        path = self.path_for(filename)

        async def _unregister() -> int:
            index = await self.index.read()
            remaining = [item for item in index.publishers if item.file != filename]
            removed = len(index.publishers) - len(remaining)
            index.publishers = remaining
            await self.index.write(index)
            return removed

        async def _delete() -> int:
            try:
                await aiofiles.os.remove(path)
            except FileNotFoundError as exc:
                raise NotFoundError("Publisher config not found") from exc
            return await self._with_index_lock(_unregister)

        try:
            removed = await self.locks.with_lock(filename, _delete)
        except NotFoundError:
            self.audit.log("DELETE_NOT_FOUND", {"filename": filename})
            raise

        if removed == 0:
            logger.warning(f"Deleted {filename} but it had no entry in the publisher index")
        logger.info(f"Deleted publisher config {filename}")
        self.audit.log("DELETE", {"filename": filename, "indexEntriesRemoved": removed})

    async def _discard(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except OSError as exc:
            logger.error(f"Could not remove {path} after failed index write: {exc}")

