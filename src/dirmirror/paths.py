"""Absolute filesystem path bound to a filesystem provider."""

import os
from typing import List, Optional, Union

from .core import AccessResult, CopyOptions, ItemStatistics
from .fs_ops import FileSystemOperations, local_file_system


class AbsolutePath:
    """Absolute location on disk plus the provider used to operate on it.

    Value type: two instances are equal when they wrap the same path.
    """

    def __init__(self, path: Union[str, os.PathLike], fs: Optional[FileSystemOperations] = None):
        self._path = os.path.abspath(os.fspath(path))
        self.fs = fs if fs is not None else local_file_system

    @property
    def path(self) -> str:
        return self._path

    @property
    def name(self) -> str:
        return os.path.basename(self._path)

    def child(self, relative_path: str) -> "AbsolutePath":
        """Resolve *relative_path* (POSIX or native separators) against this path."""
        return AbsolutePath(os.path.join(self._path, os.path.normpath(relative_path)), self.fs)

    def relative_to(self, base: "AbsolutePath") -> str:
        """POSIX-style path of this location relative to *base*."""
        return os.path.relpath(self._path, base.path).replace(os.sep, "/")

    async def exists(self) -> bool:
        return await self.fs.path_exists(self._path)

    async def stats(self) -> ItemStatistics:
        return await self.fs.get_statistics(self._path)

    async def item_names(self) -> List[str]:
        return await self.fs.get_item_names(self._path)

    async def access(self) -> AccessResult:
        return await self.fs.access(self._path)

    async def copy_to(self, destination: "AbsolutePath", options: Optional[CopyOptions] = None) -> None:
        await self.fs.copy_to(self._path, destination.path, options)

    async def ensure_directory(self) -> None:
        await self.fs.ensure_directory(self._path)

    async def remove(self) -> None:
        await self.fs.remove(self._path)

    async def read(self) -> str:
        return await self.fs.read_file(self._path)

    async def read_bytes(self) -> bytes:
        return await self.fs.read_bytes(self._path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AbsolutePath):
            return NotImplemented
        return self._path == other._path

    def __hash__(self) -> int:
        return hash(self._path)

    def __str__(self) -> str:
        return self._path

    def __repr__(self) -> str:
        return f"AbsolutePath({self._path!r})"
