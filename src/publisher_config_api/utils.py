"""
Filesystem helpers shared by the index repository and the publisher store.

This module provides helper functions for:
- Ensuring directory creation at startup
- Serializing JSON documents in the on-disk format
- Reading and atomically replacing files without blocking the event loop
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from uuid import uuid4

import aiofiles
import aiofiles.os


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    Args:
        path: The directory path to create

    Returns:
        The same path object for chaining

    Raises:
        OSError: If directory creation fails due to permissions or other I/O errors
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def dump_json(data: Any) -> str:
    """
    Serialize ``data`` the way every file in the data directory is stored.

    Two-space indentation, non-ASCII characters kept as-is.
    """
    return json.dumps(data, indent=2, ensure_ascii=False)


async def read_text(path: Path) -> str:
    async with aiofiles.open(path, "r", encoding="utf-8") as fh:
        return await fh.read()


async def write_text_atomic(path: Path, content: str) -> None:
    """
    Write ``content`` to ``path`` through a sibling temp file and a rename.

    Readers see either the old file or the new one, never a partial write.
    The temp name is unique per call so two writers never share it.

    Raises:
        OSError: If the write or the rename fails; the temp file is removed
    """
    tmp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
    try:
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as fh:
            await fh.write(content)
        await aiofiles.os.replace(tmp_path, path)
    except Exception:
        if await aiofiles.os.path.exists(tmp_path):
            await aiofiles.os.remove(tmp_path)
        raise
