"""dirmirror - replace directory contents with a filtered copy of a source directory."""

from .constants import DIRMIRROR_VERSION
from .contents import (
    DirectoryNode,
    FileNode,
    SourceFileInfo,
    StatsInfo,
    filter_contents,
    get_all_items_in_directory,
    get_source_directory_contents,
    merge_exclusions_into_source_contents,
)
from .core import DiffResult, DiffType, ItemStatistics, ItemType, SyncPlan, SyncResult
from .diffing import compute_diff
from .errors import DirMirrorError
from .fs_ops import FileSystemOperations, LocalFileSystem
from .paths import AbsolutePath
from .reconcile import (
    plan_directory_replacement,
    reconcile,
    replace_directory_contents_with_files,
)

__version__ = DIRMIRROR_VERSION

__all__ = [
    "AbsolutePath",
    "DiffResult",
    "DiffType",
    "DirMirrorError",
    "DirectoryNode",
    "FileNode",
    "FileSystemOperations",
    "ItemStatistics",
    "ItemType",
    "LocalFileSystem",
    "SourceFileInfo",
    "StatsInfo",
    "SyncPlan",
    "SyncResult",
    "compute_diff",
    "filter_contents",
    "get_all_items_in_directory",
    "get_source_directory_contents",
    "merge_exclusions_into_source_contents",
    "plan_directory_replacement",
    "reconcile",
    "replace_directory_contents_with_files",
]
