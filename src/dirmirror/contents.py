"""In-memory directory trees: snapshot, annotate, filter and merge.

A tree is a mapping of entry name to node. File nodes carry a payload
(``extra_info``) whose type depends on the tree's role:

- ``StatsInfo`` for raw snapshots of a source or destination root
- ``SourceFileInfo`` for the source tree, adding the replace-in-destination flag
- anything for exclusion trees, where only the shape matters

Symlinks are never represented; walks skip them.
"""

import asyncio
import json
import logging
import posixpath
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Iterable, Iterator, List, Optional, Set, Tuple, TypeVar, Union

from .core import ItemStatistics, ItemType
from .errors import NotADirectoryRootError, ShapeConflictError, SymlinkRootError
from .exclude import ExcludeSpec
from .paths import AbsolutePath

logger = logging.getLogger(__name__)

T = TypeVar("T")
B = TypeVar("B")
M = TypeVar("M")


# ============= Payloads =============

@dataclass(frozen=True)
class StatsInfo:
    """Payload of snapshot file nodes."""

    stats: ItemStatistics


@dataclass(frozen=True)
class SourceFileInfo:
    """Payload of source tree file nodes.

    Exclusion placeholders have ``should_replace_in_destination=False`` and
    may carry no stats: they only mark a destination path to leave alone.
    """

    should_replace_in_destination: bool
    stats: Optional[ItemStatistics] = None


# ============= Nodes =============

@dataclass(frozen=True)
class FileNode(Generic[T]):
    extra_info: T

    @property
    def type(self) -> ItemType:
        return ItemType.FILE


@dataclass
class DirectoryNode(Generic[T]):
    contents: Dict[str, "TreeNode[T]"] = field(default_factory=dict)

    @property
    def type(self) -> ItemType:
        return ItemType.DIRECTORY


TreeNode = Union[FileNode[T], DirectoryNode[T]]
DirectoryContents = Dict[str, TreeNode[T]]

SourceDirectoryContents = DirectoryContents[SourceFileInfo]
SourceItem = TreeNode[SourceFileInfo]


# ============= Tree Snapshot =============

async def get_all_items_in_directory(
    directory: AbsolutePath,
    should_include_item: Optional[Callable[[str], bool]] = None,
) -> DirectoryContents[StatsInfo]:
    """Snapshot the tree under *directory*.

    Args:
        directory: Root to walk
        should_include_item: Predicate on the POSIX path relative to the root;
            an excluded directory is not descended into

    Returns:
        Tree of files and directories; empty when the root does not exist

    Raises:
        SymlinkRootError: If the root is a symlink
        NotADirectoryRootError: If the root is not a directory
    """
    if not await directory.exists():
        return {}

    root_stats = await directory.stats()
    if root_stats.type == ItemType.SYMLINK:
        raise SymlinkRootError(directory.path)
    if root_stats.type != ItemType.DIRECTORY:
        raise NotADirectoryRootError(directory.path)

    return await _get_directory_contents(directory, directory, should_include_item)


async def _get_directory_contents(
    directory: AbsolutePath,
    root: AbsolutePath,
    should_include_item: Optional[Callable[[str], bool]],
) -> DirectoryContents[StatsInfo]:
    names = await directory.item_names()

    async def stat_item(name: str) -> Tuple[str, AbsolutePath, ItemStatistics]:
        item_path = directory.child(name)
        return name, item_path, await item_path.stats()

    items = await asyncio.gather(*(stat_item(name) for name in names))
    included = [
        item for item in items
        if should_include_item is None or should_include_item(item[1].relative_to(root))
    ]

    async def describe(item_path: AbsolutePath, stats: ItemStatistics) -> Optional[TreeNode[StatsInfo]]:
        if stats.type == ItemType.DIRECTORY:
            return DirectoryNode(await _get_directory_contents(item_path, root, should_include_item))
        if stats.type == ItemType.SYMLINK:
            return None
        return FileNode(StatsInfo(stats=stats))

    nodes = await asyncio.gather(*(describe(item_path, stats) for _, item_path, stats in included))

    contents: DirectoryContents[StatsInfo] = {}
    for (name, _, _), node in zip(included, nodes):
        if node is not None:
            contents[name] = node
    return contents


def iter_file_paths(contents: DirectoryContents, prefix: str = "") -> Iterator[str]:
    """Yield the POSIX relative path of every file in the tree."""
    for name, item in contents.items():
        item_path = posixpath.join(prefix, name) if prefix else name
        if isinstance(item, DirectoryNode):
            yield from iter_file_paths(item.contents, item_path)
        else:
            yield item_path


async def list_all_files(directory: AbsolutePath) -> List[str]:
    """Relative paths of every regular file under *directory*."""
    return list(iter_file_paths(await get_all_items_in_directory(directory)))


# ============= Source Tree =============

def normalize_relative_path(relative_path: str) -> str:
    """Normalize separators and dot segments so paths compare reliably."""
    return posixpath.normpath(relative_path.replace("\\", "/"))


def expand_with_parent_directories(relative_paths: Iterable[str]) -> Set[str]:
    """Add every ancestor directory of each path (``a/b/c`` adds ``a`` and ``a/b``)."""
    expanded: Set[str] = set()
    for relative_path in relative_paths:
        expanded.add(relative_path)
        parent = posixpath.dirname(relative_path)
        while parent not in ("", ".", "/"):
            expanded.add(parent)
            parent = posixpath.dirname(parent)
    return expanded


def convert_into_source_directory_contents(contents: DirectoryContents[StatsInfo]) -> SourceDirectoryContents:
    """Mark every file as replacing its destination counterpart."""
    converted: SourceDirectoryContents = {}
    for name, item in contents.items():
        if isinstance(item, DirectoryNode):
            converted[name] = DirectoryNode(convert_into_source_directory_contents(item.contents))
        else:
            converted[name] = FileNode(
                SourceFileInfo(should_replace_in_destination=True, stats=item.extra_info.stats)
            )
    return converted


async def get_source_directory_contents(
    source_directory: AbsolutePath,
    files_to_include: Iterable[str],
) -> SourceDirectoryContents:
    """Build the source tree restricted to *files_to_include* and their parent directories."""
    logger.info("getting item contents for source directory %s", source_directory)

    include = expand_with_parent_directories(normalize_relative_path(p) for p in files_to_include)
    items = await get_all_items_in_directory(
        source_directory,
        lambda relative_path: normalize_relative_path(relative_path) in include,
    )

    logger.info("got item contents of source directory")
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(pretty_print_directory_contents(items))

    return convert_into_source_directory_contents(items)


# ============= Exclusions =============

def filter_contents(
    globs: Union[ExcludeSpec, Iterable[str]],
    contents: DirectoryContents[T],
    directory_path: str = "",
) -> DirectoryContents[T]:
    """Keep only the entries matched by *globs*.

    A matched entry is kept whole (a matched directory keeps its full subtree).
    An unmatched directory is kept only if some descendant matches, pruned to
    those descendants.

    Args:
        globs: Exclusion patterns or a compiled ExcludeSpec
        contents: Tree to filter (typically a destination snapshot)
        directory_path: POSIX path of *contents* relative to the tree root

    Returns:
        New pruned tree
    """
    spec = globs if isinstance(globs, ExcludeSpec) else ExcludeSpec(globs)
    filtered: DirectoryContents[T] = {}
    if not spec:
        return filtered

    for name, item in contents.items():
        item_path = posixpath.join(directory_path, name) if directory_path else name
        is_dir = isinstance(item, DirectoryNode)

        if spec.matches(item_path, is_dir=is_dir):
            filtered[name] = item
            continue
        if not is_dir:
            continue

        sub_contents = filter_contents(spec, item.contents, item_path)
        if sub_contents:
            filtered[name] = DirectoryNode(sub_contents)
    return filtered


def copy_directory_contents(contents: DirectoryContents[T]) -> DirectoryContents[T]:
    """Copy of the tree's directory structure (file nodes are immutable and shared)."""
    return {
        name: DirectoryNode(copy_directory_contents(item.contents)) if isinstance(item, DirectoryNode) else item
        for name, item in contents.items()
    }


def merge_directory_contents(
    base: DirectoryContents[B],
    overlay: DirectoryContents[M],
    merge_file: Callable[[FileNode[M], Optional[FileNode[B]]], B],
    directory_path: str = "",
) -> DirectoryContents[B]:
    """Return a new tree with *overlay* laid over *base*.

    Files present in *overlay* get the payload computed by *merge_file*;
    directories present only in *overlay* are created. Neither input is
    modified.

    Raises:
        ShapeConflictError: If a path is a file in one tree and a directory in the other
    """
    merged: DirectoryContents[B] = {}
    for name, base_item in base.items():
        if name not in overlay:
            merged[name] = (
                DirectoryNode(copy_directory_contents(base_item.contents))
                if isinstance(base_item, DirectoryNode) else base_item
            )
            continue
        merged[name] = _merge_item(name, base_item, overlay[name], merge_file, directory_path)

    for name, overlay_item in overlay.items():
        if name not in base:
            merged[name] = _merge_item(name, None, overlay_item, merge_file, directory_path)
    return merged


def _merge_item(
    name: str,
    base_item: Optional[TreeNode[B]],
    overlay_item: TreeNode[M],
    merge_file: Callable[[FileNode[M], Optional[FileNode[B]]], B],
    directory_path: str,
) -> TreeNode[B]:
    item_path = posixpath.join(directory_path, name) if directory_path else name
    if base_item is not None and base_item.type != overlay_item.type:
        raise ShapeConflictError(item_path)

    if isinstance(overlay_item, FileNode):
        return FileNode(merge_file(overlay_item, base_item))

    base_contents = base_item.contents if isinstance(base_item, DirectoryNode) else {}
    return DirectoryNode(merge_directory_contents(base_contents, overlay_item.contents, merge_file, item_path))


def _do_not_replace(_excluded: FileNode, current: Optional[FileNode[SourceFileInfo]]) -> SourceFileInfo:
    stats = current.extra_info.stats if current is not None else None
    return SourceFileInfo(should_replace_in_destination=False, stats=stats)


def merge_exclusions_into_source_contents(
    source_contents: SourceDirectoryContents,
    exclusion_contents: DirectoryContents,
) -> SourceDirectoryContents:
    """Mark every path of the exclusion tree as not to be replaced.

    Paths excluded in the destination but absent from the source become
    placeholders that are never copied.
    """
    return merge_directory_contents(source_contents, exclusion_contents, _do_not_replace)


# ============= Debug Output =============

def _simplify(contents: DirectoryContents) -> dict:
    return {
        name: _simplify(item.contents) if isinstance(item, DirectoryNode) else ""
        for name, item in contents.items()
    }


def pretty_print_directory_contents(contents: DirectoryContents, prefix: str = "") -> str:
    """Render the tree's shape as indented JSON (files are ``""``)."""
    return prefix + json.dumps(_simplify(contents), indent=2)
