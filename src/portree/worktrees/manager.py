"""Worktree lifecycle: create, remove, delete branch."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from ..branches import BranchMetadataStore
from ..git import GitRunner
from ..ports.env import EnvWriter, port_env
from ..ports.models import ServiceAssignment
from .models import WorktreeRecord
from .scanner import WorktreeScanner

logger = logging.getLogger(__name__)

_UNSAFE_PATH_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


class WorktreeError(RuntimeError):
    """Base class for refused worktree operations."""


class BranchInUseError(WorktreeError):
    """Raised when a branch is checked out in more than one worktree."""

    def __init__(self, branch: str, paths: Sequence[str]) -> None:
        self.branch = branch
        self.paths = list(paths)
        super().__init__(
            f"Branch '{branch}' is checked out in {len(self.paths)} worktrees "
            f"({', '.join(self.paths)}); remove the extra worktrees first"
        )


class BranchNotManagedError(WorktreeError):
    """Raised when deleting a branch that portree did not create."""

    def __init__(self, branch: str) -> None:
        self.branch = branch
        super().__init__(f"Branch '{branch}' was not created by portree")


@dataclass(slots=True)
class CreatedWorktree:
    path: str
    branch: str
    created_branch: bool
    reference: str
    ordinal: int
    services: list[ServiceAssignment] = field(default_factory=list)
    env_file: str | None = None

    @property
    def message(self) -> str:
        if self.created_branch:
            return f"Worktree created with new branch {self.branch} from {self.reference}"
        return f"Worktree created for existing branch {self.branch}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "branch": self.branch,
            "created_branch": self.created_branch,
            "reference": self.reference,
            "ordinal": self.ordinal,
            "services": [service.to_dict() for service in self.services],
            "env_file": self.env_file,
            "message": self.message,
        }


def sanitize(name: str) -> str:
    return _UNSAFE_PATH_CHARS.sub("-", name)


class WorktreeManager:
    """Mutating worktree flows; errors from git propagate to the caller."""

    def __init__(
        self,
        *,
        root_path: Path | str,
        git: GitRunner,
        scanner: WorktreeScanner,
        branches: BranchMetadataStore,
        env_writer: EnvWriter | None = None,
        worktrees_dir: Path | str = "worktrees",
        env_file_name: str = ".env.local",
        default_base_ref: str = "origin/main",
    ) -> None:
        self._root = Path(root_path)
        self._git = git
        self._scanner = scanner
        self._branches = branches
        self._env_writer = env_writer or EnvWriter()
        self._worktrees_dir = Path(worktrees_dir)
        self._env_file_name = env_file_name
        self._default_base_ref = default_base_ref

    def suggested_path(self, branch: str) -> Path:
        base = self._worktrees_dir if self._worktrees_dir.is_absolute() else self._root / self._worktrees_dir
        return base / sanitize(branch)

    async def create(
        self,
        branch: str,
        *,
        path: str | None = None,
        base_ref: str | None = None,
    ) -> CreatedWorktree:
        """Add a worktree for ``branch``, creating the branch from ``base_ref`` if needed."""

        branch = branch.strip()
        if not branch:
            raise ValueError("Branch name must not be empty")
        target = path or str(self.suggested_path(branch))

        branch_exists = await self._git.has_ref(f"refs/heads/{branch}")
        reference = branch
        create_args: list[str] = []
        if not branch_exists:
            reference = base_ref or self._default_base_ref
            create_args = ["-b", branch]

        # The new worktree lands at the end of the listing.
        ordinal = len(await self._scanner.scan())
        await self._git.run("worktree", "add", *create_args, target, reference)
        if not branch_exists:
            await self._branches.record_created(branch, reference)

        services, env_file = await self._configure_ports(target, ordinal)
        created = CreatedWorktree(
            path=target,
            branch=branch,
            created_branch=not branch_exists,
            reference=reference,
            ordinal=ordinal,
            services=services,
            env_file=env_file,
        )
        logger.info(
            "Created worktree",
            extra={"path": target, "branch": branch, "reference": reference, "ordinal": ordinal},
        )
        return created

    async def remove(self, path: str) -> None:
        await self._git.run("worktree", "remove", path)
        logger.info("Removed worktree", extra={"path": path})

    async def delete_branch(self, branch: str, *, require_managed: bool = True) -> list[str]:
        """Delete ``branch`` and the worktree holding it.

        Refused without touching git when the branch is checked out in more than
        one worktree. Both metadata keys are cleared afterwards whether or not the
        branch was managed. Returns the removed worktree paths.
        """

        records = await self._scanner.scan()
        holders = [record.path for record in records if record.branch_ref and record.branch == branch]
        if len(holders) > 1:
            logger.warning(
                "Refusing to delete branch checked out in several worktrees",
                extra={"branch": branch, "paths": holders},
            )
            raise BranchInUseError(branch, holders)

        if require_managed and not await self._branches.is_managed(branch):
            raise BranchNotManagedError(branch)

        for holder in holders:
            await self.remove(holder)
        await self._git.run("branch", "-D", branch)
        await self._branches.forget(branch)
        logger.info("Deleted branch", extra={"branch": branch, "removed_worktrees": holders})
        return holders

    async def deletable_branches(self) -> list[str]:
        """Managed branches that still exist locally, in ref order."""

        managed = await self._branches.list_managed()
        if not managed:
            return []
        return [ref for ref in await self._branches.list_references() if ref in managed]

    async def _configure_ports(self, worktree_path: str, ordinal: int) -> tuple[list[ServiceAssignment], str | None]:
        services = await self._scanner.assign_ports(worktree_path, ordinal)
        if not services:
            return services, None
        env_path = self._env_writer.write(Path(worktree_path) / self._env_file_name, port_env(services))
        return services, str(env_path)


def port_info(record: WorktreeRecord) -> str:
    return "\n".join(f"{service.service_name}: {service.port}" for service in record.services)


__all__ = [
    "BranchInUseError",
    "BranchNotManagedError",
    "CreatedWorktree",
    "WorktreeError",
    "WorktreeManager",
    "port_info",
    "sanitize",
]
