"""Directory interface consumed by the shard store, plus a local-folder implementation."""

import asyncio
from pathlib import Path
from typing import Protocol

from kline_cache.exceptions import EntryNotFound


class FileHandle(Protocol):
    """A named file inside a directory."""

    name: str

    async def read_text(self) -> str: ...

    async def write_text(self, text: str) -> None: ...

    async def read_bytes(self) -> bytes: ...

    async def write_bytes(self, data: bytes) -> None: ...


class Directory(Protocol):
    """The narrow directory surface the store depends on.

    Lookups of missing entries must raise ``EntryNotFound`` so callers can tell
    "absent" apart from "unreadable".
    """

    async def get_file(self, name: str, create: bool = False) -> FileHandle: ...

    async def remove_entry(self, name: str) -> None: ...


class LocalFileHandle:
    """File handle backed by a path on the local filesystem."""

    def __init__(self, path: Path):
        self.path = path
        self.name = path.name

    async def read_text(self) -> str:
        return await asyncio.to_thread(self._read_text)

    async def write_text(self, text: str) -> None:
        await asyncio.to_thread(self.path.write_text, text, encoding="utf-8")

    async def read_bytes(self) -> bytes:
        return await asyncio.to_thread(self._read_bytes)

    async def write_bytes(self, data: bytes) -> None:
        await asyncio.to_thread(self.path.write_bytes, data)

    def _read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise EntryNotFound(self.name) from None

    def _read_bytes(self) -> bytes:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            raise EntryNotFound(self.name) from None


class LocalDirectory:
    """A folder on the local filesystem.

    The folder is created on the first ``get_file(..., create=True)``.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.name = self.path.name

    async def get_file(self, name: str, create: bool = False) -> LocalFileHandle:
        """Return a handle for ``name``.

        Raises:
            EntryNotFound: If the file does not exist and ``create`` is False.
        """
        target = self._entry_path(name)
        if create:
            await asyncio.to_thread(self._touch, target)
        elif not await asyncio.to_thread(target.is_file):
            raise EntryNotFound(name)
        return LocalFileHandle(target)

    async def remove_entry(self, name: str) -> None:
        """Delete ``name``.

        Raises:
            EntryNotFound: If the file does not exist.
        """
        target = self._entry_path(name)
        try:
            await asyncio.to_thread(target.unlink)
        except FileNotFoundError:
            raise EntryNotFound(name) from None

    def _entry_path(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ValueError(f"Invalid entry name: {name!r}")
        return self.path / name

    @staticmethod
    def _touch(target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.touch(exist_ok=True)

    def __repr__(self) -> str:
        return f"LocalDirectory({str(self.path)!r})"
