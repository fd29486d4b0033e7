"""Worktree scanning and lifecycle management."""

from .manager import (
    BranchInUseError,
    BranchNotManagedError,
    CreatedWorktree,
    WorktreeError,
    WorktreeManager,
    port_info,
)
from .models import RawWorktree, WorktreeRecord
from .recents import RecentEntry, RecentStore
from .scanner import WorktreeScanner, parse_worktree_list

__all__ = [
    "BranchInUseError",
    "BranchNotManagedError",
    "CreatedWorktree",
    "RawWorktree",
    "RecentEntry",
    "RecentStore",
    "WorktreeError",
    "WorktreeManager",
    "WorktreeRecord",
    "WorktreeScanner",
    "parse_worktree_list",
    "port_info",
]
