"""Aggregate git worktree state with on-disk metadata and service ports."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from pathlib import Path

from ..git import GitCommandError, GitRunner
from ..ports.allocator import PortAllocator
from ..ports.detector import ServiceDetectorProtocol
from ..ports.models import ServiceAssignment
from .models import RawWorktree, WorktreeRecord

logger = logging.getLogger(__name__)

_GITDIR_LINE = re.compile(r"gitdir:\s*(.*)", re.IGNORECASE)


def parse_worktree_list(output: str) -> list[RawWorktree]:
    """Parse ``git worktree list --porcelain`` into raw entries.

    Blocks are separated by blank lines and open with ``worktree <path>``.
    Only ``branch`` and ``HEAD`` lines are read; anything else git adds
    (``detached``, ``locked``, ``prunable`` ...) is ignored.
    """

    entries: list[RawWorktree] = []
    current: RawWorktree | None = None

    for line in output.splitlines():
        if not line.strip():
            if current is not None:
                entries.append(current)
                current = None
            continue

        if line.startswith("worktree "):
            if current is not None:
                entries.append(current)
            current = RawWorktree(path=line[len("worktree "):].strip())
            continue

        if current is None:
            continue

        if line.startswith("branch "):
            current.branch = line[len("branch "):].strip()
        elif line.startswith("HEAD "):
            current.head = line[len("HEAD "):].strip()

    if current is not None:
        entries.append(current)

    return entries


class WorktreeScanner:
    """Build a fresh list of :class:`WorktreeRecord` on every call to :meth:`scan`."""

    def __init__(
        self,
        *,
        root_path: Path | str,
        git: GitRunner,
        allocator: PortAllocator,
        detector: ServiceDetectorProtocol,
    ) -> None:
        self._root = Path(root_path)
        self._git = git
        self._allocator = allocator
        self._detector = detector
        self._git_dir: Path | None = None

    async def scan(self) -> list[WorktreeRecord]:
        try:
            output = await self._git.run("worktree", "list", "--porcelain")
        except GitCommandError as exc:
            logger.error("Failed to list worktrees: %s", exc)
            return []

        entries = parse_worktree_list(output)
        return list(
            await asyncio.gather(*(self._build_record(entry, index) for index, entry in enumerate(entries)))
        )

    async def _build_record(self, entry: RawWorktree, ordinal: int) -> WorktreeRecord:
        created_at, dirty_count, services = await asyncio.gather(
            self.get_created_at(entry.path),
            self.count_changes(entry.path),
            self.assign_ports(entry.path, ordinal),
        )
        return WorktreeRecord(
            path=entry.path,
            ordinal=ordinal,
            branch_ref=entry.branch,
            head=entry.head,
            created_at=created_at,
            dirty_count=dirty_count,
            services=tuple(services),
        )

    async def count_changes(self, worktree_path: str) -> int:
        try:
            output = await self._git.run("-C", worktree_path, "status", "--porcelain")
        except GitCommandError as exc:
            logger.error("Failed to read git status for %s: %s", worktree_path, exc)
            return 0
        return sum(1 for line in output.splitlines() if line.strip())

    async def assign_ports(self, worktree_path: str, ordinal: int) -> list[ServiceAssignment]:
        try:
            services = await self._detector.detect(worktree_path)
        except OSError as exc:
            logger.warning("Failed to detect services in %s: %s", worktree_path, exc)
            return []
        return self._allocator.assign_all(services, ordinal)

    async def get_created_at(self, worktree_path: str) -> int | None:
        """Creation time in epoch milliseconds, best effort."""

        git_dir = await self.get_git_dir()
        created = await asyncio.to_thread(_read_admin_created_at, git_dir / "worktrees", worktree_path, self._root)
        if created is not None:
            return created
        return await asyncio.to_thread(_stat_created_at, worktree_path)

    async def get_git_dir(self) -> Path:
        if self._git_dir is None:
            self._git_dir = await asyncio.to_thread(resolve_git_dir, self._root)
        return self._git_dir


def resolve_git_dir(root: Path) -> Path:
    """Locate the common git directory for ``root``.

    ``root/.git`` is either the directory itself or a ``gitdir:`` pointer file
    (linked worktrees, submodules). A ``commondir`` file inside a per-worktree
    git dir leads back to the shared one.
    """

    git_path = root / ".git"
    try:
        if git_path.is_dir():
            git_dir = git_path
        else:
            match = _GITDIR_LINE.search(git_path.read_text(encoding="utf-8"))
            if not match or not match.group(1).strip():
                return git_path
            git_dir = (root / match.group(1).strip()).resolve()
        commondir = git_dir / "commondir"
        if commondir.is_file():
            git_dir = (git_dir / commondir.read_text(encoding="utf-8").strip()).resolve()
        return git_dir
    except OSError as exc:
        logger.warning("Unable to resolve .git directory for %s: %s", root, exc)
        return git_path


def _read_admin_created_at(worktrees_dir: Path, worktree_path: str, root: Path) -> int | None:
    try:
        admin_dirs = [entry for entry in sorted(worktrees_dir.iterdir()) if entry.is_dir()]
    except OSError as exc:
        logger.warning("Unable to list worktree configs in %s: %s", worktrees_dir, exc)
        return None

    target = _normalize(worktree_path, root)
    for admin_dir in admin_dirs:
        config_path = admin_dir / "config"
        try:
            values = _parse_admin_config(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            continue
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to read worktree config %s: %s", config_path, exc)
            continue

        declared = values.get("worktree")
        if not declared or _normalize(declared, root) != target:
            continue
        created = values.get("createdAt")
        if created is None:
            return None
        try:
            return int(float(created) * 1000)
        except (ValueError, OverflowError):
            logger.warning("Ignoring malformed createdAt %r in %s", created, config_path)
            return None
    return None


def _parse_admin_config(text: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.strip().partition(" = ")
        if sep:
            values.setdefault(key.strip(), value.strip())
    return values


def _normalize(path: str, root: Path) -> str:
    return os.path.normcase(str((root / path).resolve()))


def _stat_created_at(worktree_path: str) -> int | None:
    try:
        stats = os.stat(worktree_path)
    except OSError:
        return None
    birth = getattr(stats, "st_birthtime", None)
    return int((birth or stats.st_ctime) * 1000)


__all__ = ["WorktreeScanner", "parse_worktree_list", "resolve_git_dir"]
