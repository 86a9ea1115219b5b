"""Diff computation between a source tree and a destination snapshot."""

import asyncio
from typing import List, Optional

from .contents import (
    DirectoryContents,
    DirectoryNode,
    FileNode,
    SourceDirectoryContents,
    SourceItem,
    StatsInfo,
    TreeNode,
)
from .core import DiffResult, DiffType, ItemStatistics
from .paths import AbsolutePath


async def compute_diff(
    source_directory: AbsolutePath,
    source_contents: SourceDirectoryContents,
    destination_directory: AbsolutePath,
    destination_contents: DirectoryContents[StatsInfo],
) -> List[DiffResult]:
    """
    Compare a source tree against a destination tree.

    Args:
        source_directory: Root the source tree was taken from.
        source_contents: Source tree with exclusions merged in.
        destination_directory: Root the destination tree was taken from.
        destination_contents: Snapshot of the destination.

    Returns:
        One DiffResult per relative path present in either tree, except
        directories present in both (their descendants are reported instead)
        and files marked as not to be replaced.
    """
    per_item = await asyncio.gather(*(
        _diff_item(
            source_directory,
            destination_directory,
            name,
            source_item,
            destination_contents.get(name),
        )
        for name, source_item in source_contents.items()
    ))
    results = [result for item_results in per_item for result in item_results]

    for name in destination_contents:
        if name not in source_contents:
            results.append(DiffResult(path=name, diff_type=DiffType.REMOVED))

    return results


async def _diff_item(
    source_directory: AbsolutePath,
    destination_directory: AbsolutePath,
    name: str,
    source_item: SourceItem,
    destination_item: Optional[TreeNode[StatsInfo]],
) -> List[DiffResult]:
    if destination_item is None:
        return [DiffResult(path=name, diff_type=DiffType.ADDED, source_item=source_item)]

    source_path = source_directory.child(name)
    destination_path = destination_directory.child(name)

    if isinstance(source_item, DirectoryNode) and isinstance(destination_item, DirectoryNode):
        sub_results = await compute_diff(
            source_path,
            source_item.contents,
            destination_path,
            destination_item.contents,
        )
        return [result.with_parent(name) for result in sub_results]

    if isinstance(source_item, FileNode):
        if not source_item.extra_info.should_replace_in_destination:
            # Excluded: leave the destination as it is
            return []

        if isinstance(destination_item, FileNode):
            diff_type = await diff_files(
                source_path,
                source_item.extra_info.stats,
                destination_path,
                destination_item.extra_info.stats,
            )
            if diff_type == DiffType.EQUAL:
                return [DiffResult(path=name, diff_type=diff_type)]
            return [DiffResult(path=name, diff_type=diff_type, source_item=source_item)]

    return [DiffResult(path=name, diff_type=DiffType.CHANGED_TYPES, source_item=source_item)]


async def diff_files(
    source_path: AbsolutePath,
    source_stats: ItemStatistics,
    destination_path: AbsolutePath,
    destination_stats: ItemStatistics,
) -> DiffType:
    """Decide whether a destination file already matches its source.

    Matching modification time and size are confirmed with a full content
    comparison, since mtime granularity can hide a change.
    """
    if (
        destination_stats.modified_time_ns == source_stats.modified_time_ns
        and destination_stats.size == source_stats.size
    ):
        destination_bytes, source_bytes = await asyncio.gather(
            destination_path.read_bytes(),
            source_path.read_bytes(),
        )
        if destination_bytes == source_bytes:
            return DiffType.EQUAL

    return DiffType.CHANGED_CONTENTS
