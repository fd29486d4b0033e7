"""Data models for scanned worktrees."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from ..ports.models import ServiceAssignment

BRANCH_REF_PREFIX = "refs/heads/"
MS_PER_DAY = 1000 * 60 * 60 * 24


@dataclass(slots=True)
class RawWorktree:
    """One block of ``git worktree list --porcelain`` output."""

    path: str
    branch: str | None = None
    head: str | None = None


@dataclass(frozen=True, slots=True)
class WorktreeRecord:
    """A live checkout as seen by one scan; rebuilt from scratch on the next."""

    path: str
    ordinal: int
    branch_ref: str | None = None
    head: str | None = None
    created_at: int | None = None
    dirty_count: int = 0
    services: tuple[ServiceAssignment, ...] = field(default_factory=tuple)

    @property
    def branch(self) -> str | None:
        """Short branch name, or the commit hash for a detached HEAD."""

        if self.branch_ref:
            return short_branch_name(self.branch_ref)
        return self.head

    @property
    def display_name(self) -> str:
        return self.branch or os.path.basename(self.path.rstrip("/\\")) or self.path

    @property
    def is_dirty(self) -> bool:
        return self.dirty_count > 0

    def days_since_created(self, now_ms: int) -> int | None:
        if self.created_at is None:
            return None
        return max(0, (now_ms - self.created_at) // MS_PER_DAY)

    def describe(self, now_ms: int) -> str:
        parts: list[str] = []
        days = self.days_since_created(now_ms)
        if days is not None:
            parts.append(f"{days}d")
        parts.append(f"Δ{self.dirty_count}")
        return " · ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.display_name,
            "path": self.path,
            "ordinal": self.ordinal,
            "branch": self.branch,
            "branch_ref": self.branch_ref,
            "head": self.head,
            "created_at": self.created_at,
            "dirty_count": self.dirty_count,
            "services": [service.to_dict() for service in self.services],
        }


def short_branch_name(ref: str) -> str:
    if ref.startswith(BRANCH_REF_PREFIX):
        return ref[len(BRANCH_REF_PREFIX):]
    return ref


__all__ = ["RawWorktree", "WorktreeRecord", "short_branch_name"]
