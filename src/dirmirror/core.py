"""Core data models for dirmirror.

Plan/Apply Pattern:
-------------------
A destination is first diffed against the source tree to produce a flat list
of per-path results (the plan). Applying the plan happens in four strictly
ordered phases:

1. Copy added items
2. Copy items whose contents changed
3. Remove (verified) then copy items whose type changed
4. Remove items no longer present in the source

Items within a phase run concurrently; phases never overlap.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

from pydantic import BaseModel

from .constants import ACCESS_ERROR_NO_SUCH_FILE_OR_DIRECTORY

if TYPE_CHECKING:
    from .contents import SourceItem


# ============= Filesystem Items =============

class ItemType(str, Enum):
    """Type of a filesystem item as reported by a non-following stat."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


class ItemStatistics(BaseModel):
    """Stat information about a single item (symlinks are never followed)."""

    model_config = {"frozen": True}

    type: ItemType
    modified_time_ns: int  # st_mtime_ns, compared exactly
    size: int


class CopyOptions(BaseModel):
    """Options for the copy primitive."""

    # When true the copy gets the source's access and modification times
    preserve_timestamps: bool = False


class AccessResult(BaseModel):
    """Typed outcome of an access check: success, or the failing errno name."""

    model_config = {"frozen": True}

    ok: bool
    code: Optional[str] = None

    @classmethod
    def success(cls) -> "AccessResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, code: str) -> "AccessResult":
        return cls(ok=False, code=code)

    @property
    def indicates_removed(self) -> bool:
        """True when the check failed because nothing exists at the path."""
        return not self.ok and self.code == ACCESS_ERROR_NO_SUCH_FILE_OR_DIRECTORY


# ============= Change Detection =============

class DiffType(str, Enum):
    """Classification of one relative path when comparing source to destination."""

    ADDED = "added"
    CHANGED_CONTENTS = "changed-contents"
    CHANGED_TYPES = "changed-types"
    EQUAL = "equal"
    REMOVED = "removed"


@dataclass(frozen=True)
class DiffResult:
    """Single diff result, keyed by its path relative to the compared roots."""

    path: str
    diff_type: DiffType
    # Source tree node to copy; set for added, changed-contents and changed-types
    source_item: Optional["SourceItem"] = None

    def with_parent(self, parent: str) -> "DiffResult":
        """Return a copy whose path is nested under *parent*."""
        return replace(self, path=f"{parent}/{self.path}")


@dataclass
class SyncPlan:
    """Diff results for one destination, grouped into the buckets applied in order."""

    destination: str
    added: List[DiffResult] = field(default_factory=list)
    changed_contents: List[DiffResult] = field(default_factory=list)
    changed_types: List[DiffResult] = field(default_factory=list)
    removed: List[DiffResult] = field(default_factory=list)
    equal: List[str] = field(default_factory=list)

    @classmethod
    def from_results(cls, destination: str, results: List[DiffResult]) -> "SyncPlan":
        """Group a flat list of diff results by type."""
        plan = cls(destination=destination)
        buckets = {
            DiffType.ADDED: plan.added,
            DiffType.CHANGED_CONTENTS: plan.changed_contents,
            DiffType.CHANGED_TYPES: plan.changed_types,
            DiffType.REMOVED: plan.removed,
        }
        for result in results:
            if result.diff_type == DiffType.EQUAL:
                plan.equal.append(result.path)
            else:
                buckets[result.diff_type].append(result)
        return plan

    @property
    def in_sync(self) -> bool:
        return not (self.added or self.changed_contents or self.changed_types or self.removed)

    @property
    def summary_counts(self) -> Dict[DiffType, int]:
        """Get summary counts by diff type."""
        return {
            DiffType.ADDED: len(self.added),
            DiffType.CHANGED_CONTENTS: len(self.changed_contents),
            DiffType.CHANGED_TYPES: len(self.changed_types),
            DiffType.REMOVED: len(self.removed),
            DiffType.EQUAL: len(self.equal),
        }

    def actions(self) -> List[DiffResult]:
        """All non-equal results sorted by path."""
        result = self.added + self.changed_contents + self.changed_types + self.removed
        return sorted(result, key=lambda r: r.path)

    def summary(self) -> str:
        """Get human-readable summary."""
        if self.in_sync:
            return f"Up to date ({len(self.equal)} unchanged)"
        parts = [f"+ {len(self.added)} new", f"~ {len(self.changed_contents)} changed"]
        if self.changed_types:
            parts.append(f"{len(self.changed_types)} changed type")
        if self.removed:
            parts.append(f"- {len(self.removed)} to remove")
        parts.append(f"{len(self.equal)} unchanged")
        return ", ".join(parts)


class SyncResult(BaseModel):
    """Result of a completed reconciliation of one destination."""

    destination: str
    added: int = 0
    changed_contents: int = 0
    changed_types: int = 0
    removed: int = 0
    unchanged: int = 0

    @classmethod
    def from_plan(cls, plan: SyncPlan) -> "SyncResult":
        return cls(
            destination=plan.destination,
            added=len(plan.added),
            changed_contents=len(plan.changed_contents),
            changed_types=len(plan.changed_types),
            removed=len(plan.removed),
            unchanged=len(plan.equal),
        )

    def summary(self) -> str:
        """Get human-readable summary."""
        copied = self.added + self.changed_contents + self.changed_types
        parts = [f"✓ Copied {copied} items"]
        if self.removed:
            parts.append(f"removed {self.removed}")
        parts.append(f"{self.unchanged} unchanged")
        return ", ".join(parts)
