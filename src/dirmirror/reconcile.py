"""Apply diff results to destination directories.

Replacing a destination happens in four phases, each finishing before the
next starts (items within a phase run concurrently):

1. copy added items
2. copy items whose contents changed
3. remove items whose type changed, verifying the removal, then copy them
4. remove items that are no longer in the source

Type changes must vacate the destination path completely before the
replacement is written, otherwise a copy could merge into a directory or
over a file. Obsolete paths go last so they never interfere with copies
sharing their ancestors.
"""

import asyncio
import logging
import posixpath
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple, Union

from .constants import ACCESS_ERRORS_PENDING_DELETE, REMOVAL_RETRY_DELAY
from .contents import (
    DirectoryNode,
    SourceDirectoryContents,
    SourceItem,
    filter_contents,
    get_all_items_in_directory,
    get_source_directory_contents,
    merge_exclusions_into_source_contents,
    pretty_print_directory_contents,
)
from .core import CopyOptions, DiffResult, ItemType, SyncPlan, SyncResult
from .diffing import compute_diff
from .errors import PathStillExistsError, PendingDeleteError, UnexpectedAccessError
from .exclude import ExcludeSpec
from .paths import AbsolutePath

logger = logging.getLogger(__name__)

RemoveFunction = Callable[[AbsolutePath], Awaitable[None]]


# ============= Entry Points =============

async def replace_directory_contents_with_files(
    source_directory: AbsolutePath,
    destination_directories: Sequence[AbsolutePath],
    files_relative_paths: Iterable[str],
    path_globs_to_exclude: Iterable[str] = (),
) -> List[SyncResult]:
    """Make every destination hold exactly the listed source files.

    Destination paths matching *path_globs_to_exclude* are neither replaced
    nor removed. Destinations are processed concurrently, each with its own
    copy of the source tree.

    Args:
        source_directory: Directory to copy from
        destination_directories: Directories whose contents get replaced
        files_relative_paths: Source files to copy, relative to the source directory
        path_globs_to_exclude: Globs of destination paths to leave untouched

    Returns:
        One SyncResult per destination, in the order given
    """
    source_contents = await get_source_directory_contents(source_directory, files_relative_paths)
    exclude = ExcludeSpec(path_globs_to_exclude)

    return list(await asyncio.gather(*(
        replace_contents_of_directory(destination, source_directory, source_contents, exclude)
        for destination in destination_directories
    )))


async def plan_directory_replacement(
    source_directory: AbsolutePath,
    destination_directories: Sequence[AbsolutePath],
    files_relative_paths: Iterable[str],
    path_globs_to_exclude: Iterable[str] = (),
) -> List[SyncPlan]:
    """Compute what ``replace_directory_contents_with_files`` would do, without doing it."""
    source_contents = await get_source_directory_contents(source_directory, files_relative_paths)
    exclude = ExcludeSpec(path_globs_to_exclude)

    return list(await asyncio.gather(*(
        plan_destination(destination, source_directory, source_contents, exclude)
        for destination in destination_directories
    )))


async def replace_contents_of_directory(
    destination_directory: AbsolutePath,
    source_directory: AbsolutePath,
    source_contents: SourceDirectoryContents,
    exclude: Union[ExcludeSpec, Iterable[str]],
) -> SyncResult:
    """Plan and apply the replacement of a single destination."""
    plan = await plan_destination(destination_directory, source_directory, source_contents, exclude)
    return await apply_plan(source_directory, destination_directory, plan)


async def plan_destination(
    destination_directory: AbsolutePath,
    source_directory: AbsolutePath,
    source_contents: SourceDirectoryContents,
    exclude: Union[ExcludeSpec, Iterable[str]],
) -> SyncPlan:
    """Snapshot the destination, merge its excluded paths into the source tree and diff."""
    dest = destination_directory.path
    exclude = exclude if isinstance(exclude, ExcludeSpec) else ExcludeSpec(exclude)

    logger.info("(%s) getting contents of destination directory", dest)
    destination_contents = await get_all_items_in_directory(destination_directory)

    logger.info("(%s) excluding [%s] from destination directory file contents", dest, ", ".join(exclude.patterns))
    items_to_not_overwrite = filter_contents(exclude, destination_contents)
    merged_source_contents = merge_exclusions_into_source_contents(source_contents, items_to_not_overwrite)

    logger.info("(%s) finished excluding destination directory file contents", dest)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(pretty_print_directory_contents(merged_source_contents, f"({dest}) "))

    logger.info("(%s) about to diff items in the source directory against those in the destination directory", dest)
    results = await compute_diff(
        source_directory,
        merged_source_contents,
        destination_directory,
        destination_contents,
    )
    logger.info("(%s) finished diff", dest)

    return SyncPlan.from_results(dest, results)


async def reconcile(
    source_directory: AbsolutePath,
    destination_directory: AbsolutePath,
    diff_results: Iterable[DiffResult],
) -> SyncResult:
    """Apply a flat list of diff results to *destination_directory*."""
    plan = SyncPlan.from_results(destination_directory.path, list(diff_results))
    return await apply_plan(source_directory, destination_directory, plan)


async def apply_plan(
    source_directory: AbsolutePath,
    destination_directory: AbsolutePath,
    plan: SyncPlan,
) -> SyncResult:
    """Run the four phases for one destination."""
    dest = destination_directory.path

    logger.info("(%s) copying new items from the source directory to the destination directory", dest)
    _log_items(dest, "copying these items to destination directory", plan.added)
    await copy_items(source_directory, destination_directory, _copy_list(plan.added))

    logger.info("(%s) copying changed items from the source directory to the destination directory", dest)
    _log_items(dest, "copying these items to destination directory", plan.changed_contents)
    await copy_items(source_directory, destination_directory, _copy_list(plan.changed_contents))

    logger.info("(%s) removing items that changed type from destination directory", dest)
    _log_items(dest, "removing these items from destination directory", plan.changed_types)
    await remove_items(destination_directory, [r.path for r in plan.changed_types], ensure_item_removed)

    logger.info("(%s) copying items that changed type to destination directory", dest)
    _log_items(dest, "copying these items to destination directory", plan.changed_types)
    await copy_items(source_directory, destination_directory, _copy_list(plan.changed_types))

    logger.info(
        "(%s) removing items from destination directory that are no longer present in the source directory", dest
    )
    _log_items(dest, "removing these items from destination directory", plan.removed)
    await remove_items(destination_directory, [r.path for r in plan.removed])

    return SyncResult.from_plan(plan)


def _copy_list(results: List[DiffResult]) -> List[Tuple[str, SourceItem]]:
    return [(result.path, result.source_item) for result in results]


def _log_items(dest: str, message: str, results: List[DiffResult]) -> None:
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("(%s) %s\n[%s]", dest, message, ",\n".join(r.path for r in results))


# ============= Copy / Remove =============

async def copy_items(
    copy_from: AbsolutePath,
    copy_to: AbsolutePath,
    items: List[Tuple[str, SourceItem]],
) -> None:
    """Copy files one by one, recursing into directories.

    Files are copied with their timestamps so the next diff sees them as equal.
    Files marked as not to be replaced are skipped.
    """
    async def copy_item(relative_path: str, item: SourceItem) -> None:
        if isinstance(item, DirectoryNode):
            destination = copy_to.child(relative_path)
            await remove_symlink(destination)
            await destination.ensure_directory()
            await copy_items(copy_from, copy_to, [
                (posixpath.join(relative_path, name), sub_item)
                for name, sub_item in item.contents.items()
            ])
            return

        if not item.extra_info.should_replace_in_destination:
            return
        await copy_from.child(relative_path).copy_to(
            copy_to.child(relative_path),
            CopyOptions(preserve_timestamps=True),
        )

    await asyncio.gather(*(copy_item(relative_path, item) for relative_path, item in items))


async def remove_symlink(item_path: AbsolutePath) -> None:
    """Remove *item_path* if it is a symlink.

    Snapshots skip symlinks, so a destination link can sit where a source
    directory is about to be created; it is replaced rather than followed.
    """
    if await item_path.exists() and (await item_path.stats()).type == ItemType.SYMLINK:
        await remove_item(item_path)


async def remove_items(
    remove_from: AbsolutePath,
    relative_paths: List[str],
    remove_function: Optional[RemoveFunction] = None,
) -> None:
    remove_function = remove_function or remove_item
    await asyncio.gather(*(remove_function(remove_from.child(p)) for p in relative_paths))


async def remove_item(item_path: AbsolutePath) -> None:
    """Plain removal; failures are logged and re-raised."""
    try:
        await item_path.remove()
    except Exception:
        _report_unable_to_remove_item(item_path)
        raise


async def ensure_item_removed(item_path: AbsolutePath) -> None:
    """Remove *item_path* and confirm it is gone.

    The path is checked right after the remove call and, if still present,
    once more after ``REMOVAL_RETRY_DELAY``.

    Raises:
        PathStillExistsError: The path is still accessible
        PendingDeleteError: Access fails with EPERM or EACCES (pending delete)
        UnexpectedAccessError: Access fails with any other code
    """
    try:
        await item_path.remove()
        access_result = await item_path.access()
        if access_result.indicates_removed:
            return

        # Rarely needed: give the OS a moment to finish the delete
        await asyncio.sleep(REMOVAL_RETRY_DELAY)
        access_result = await item_path.access()
        if access_result.indicates_removed:
            return

        if access_result.ok:
            raise PathStillExistsError(item_path.path)
        if access_result.code in ACCESS_ERRORS_PENDING_DELETE:
            raise PendingDeleteError(item_path.path, access_result.code)
        raise UnexpectedAccessError(item_path.path, access_result.code)
    except Exception:
        _report_unable_to_remove_item(item_path)
        raise


def _report_unable_to_remove_item(item_path: AbsolutePath) -> None:
    logger.error("Unable to remove item %s", item_path.path)
