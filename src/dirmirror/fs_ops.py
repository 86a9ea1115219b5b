"""Filesystem capability provider.

All tree walking, diffing and reconciliation goes through the narrow
``FileSystemOperations`` protocol so tests can substitute counting or
scripted implementations. Methods are coroutines; ``LocalFileSystem`` runs
each OS call inline on the event loop thread.
"""

import errno
import logging
import os
import shutil
import stat
import time
from pathlib import Path
from typing import List, Optional, Protocol

from .core import AccessResult, CopyOptions, ItemStatistics, ItemType
from .errors import CopyError

logger = logging.getLogger(__name__)


class FileSystemOperations(Protocol):
    """
    Protocol for filesystem implementations.

    Failures surface as raised ``OSError`` (or ``CopyError`` for copies),
    except ``access`` which reports them as a typed ``AccessResult``.
    """

    async def access(self, path: str) -> AccessResult:
        """Check that *path* exists; failures carry the errno name (ENOENT, EPERM, ...)."""
        ...

    async def copy_to(self, src_path: str, dest_path: str, options: Optional[CopyOptions] = None) -> None:
        """Copy a file or directory tree, overwriting what is already there.

        A symlink at *dest_path* is replaced, never followed.
        """
        ...

    async def remove(self, item_path: str) -> None:
        """Remove a file or a directory tree. Missing paths are not an error."""
        ...

    async def read_file(self, file_path: str) -> str:
        ...

    async def read_bytes(self, file_path: str) -> bytes:
        ...

    async def path_exists(self, path: str) -> bool:
        ...

    async def get_statistics(self, path: str) -> ItemStatistics:
        """Non-following stat."""
        ...

    async def get_item_names(self, root_dir: str) -> List[str]:
        ...

    async def is_file(self, path: str) -> bool:
        ...

    async def is_directory(self, path: str) -> bool:
        ...

    async def write_file(self, path: str, contents: str) -> None:
        """Write text, creating missing parent directories."""
        ...

    async def set_times(self, item_path: str, modified_time_ns: int) -> None:
        """Set the modification time (access time becomes now)."""
        ...

    async def ensure_directory(self, dir_path: str) -> None:
        ...

    async def ensure_symlink(self, symlink_location_path: str, symlink_target_path: str) -> None:
        ...


def _errno_name(exc: OSError) -> str:
    if exc.errno is None:
        return type(exc).__name__
    return errno.errorcode.get(exc.errno, str(exc.errno))


class LocalFileSystem:
    """FileSystemOperations backed by the local disk."""

    async def access(self, path: str) -> AccessResult:
        try:
            os.lstat(path)
        except OSError as e:
            return AccessResult.failure(_errno_name(e))
        return AccessResult.success()

    async def copy_to(self, src_path: str, dest_path: str, options: Optional[CopyOptions] = None) -> None:
        options = options or CopyOptions()
        copy_function = shutil.copy2 if options.preserve_timestamps else shutil.copy
        try:
            # Replace a symlink at the destination instead of writing through it
            if os.path.islink(dest_path):
                os.unlink(dest_path)
            if os.path.isdir(src_path) and not os.path.islink(src_path):
                shutil.copytree(
                    src_path,
                    dest_path,
                    symlinks=True,
                    copy_function=copy_function,
                    dirs_exist_ok=True,
                )
            else:
                Path(dest_path).parent.mkdir(parents=True, exist_ok=True)
                copy_function(src_path, dest_path, follow_symlinks=False)
        except OSError as e:
            logger.error("Unable to copy item %s to %s", src_path, dest_path)
            raise CopyError(src_path, dest_path, str(e)) from e

    async def remove(self, item_path: str) -> None:
        try:
            mode = os.lstat(item_path).st_mode
        except FileNotFoundError:
            return
        if stat.S_ISDIR(mode):
            shutil.rmtree(item_path)
        else:
            os.unlink(item_path)

    async def read_file(self, file_path: str) -> str:
        return Path(file_path).read_text(encoding="utf-8")

    async def read_bytes(self, file_path: str) -> bytes:
        return Path(file_path).read_bytes()

    async def path_exists(self, path: str) -> bool:
        return os.path.lexists(path)

    async def get_statistics(self, path: str) -> ItemStatistics:
        item_stats = os.lstat(path)
        if stat.S_ISDIR(item_stats.st_mode):
            item_type = ItemType.DIRECTORY
        elif stat.S_ISLNK(item_stats.st_mode):
            item_type = ItemType.SYMLINK
        else:
            item_type = ItemType.FILE
        return ItemStatistics(
            type=item_type,
            modified_time_ns=item_stats.st_mtime_ns,
            size=item_stats.st_size,
        )

    async def get_item_names(self, root_dir: str) -> List[str]:
        return sorted(os.listdir(root_dir))

    async def is_file(self, path: str) -> bool:
        return os.path.isfile(path)

    async def is_directory(self, path: str) -> bool:
        return os.path.isdir(path)

    async def write_file(self, path: str, contents: str) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(contents, encoding="utf-8")

    async def set_times(self, item_path: str, modified_time_ns: int) -> None:
        os.utime(item_path, ns=(time.time_ns(), modified_time_ns))

    async def ensure_directory(self, dir_path: str) -> None:
        Path(dir_path).mkdir(parents=True, exist_ok=True)

    async def ensure_symlink(self, symlink_location_path: str, symlink_target_path: str) -> None:
        if os.path.lexists(symlink_location_path):
            return
        Path(symlink_location_path).parent.mkdir(parents=True, exist_ok=True)
        os.symlink(symlink_target_path, symlink_location_path)


# Shared default provider
local_file_system = LocalFileSystem()
