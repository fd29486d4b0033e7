"""Managed-branch bookkeeping persisted in the repository's local git config."""

from __future__ import annotations

import logging
from typing import Sequence

from ..git import GitCommandError, GitRunner
from .models import BranchMetadata, base_key, managed_key, parse_config_listing

logger = logging.getLogger(__name__)

# ``git config --unset`` exits with 5 when the key does not exist.
_UNSET_MISSING_KEY = 5

DEFAULT_REF_PATTERNS: tuple[str, ...] = ("refs/heads",)


class BranchMetadataStore:
    """Typed view over ``branch.<name>.portree-*`` keys in ``git config --local``.

    Nothing is cached: every read lists the whole local config and parses it,
    so the store always reflects what git has on disk.
    """

    def __init__(self, git: GitRunner) -> None:
        self._git = git

    # -- writes --------------------------------------------------------------

    async def mark_managed(self, branch: str) -> None:
        await self._git.run("config", "--local", managed_key(branch), "true")

    async def unmark_managed(self, branch: str) -> None:
        await self._unset(managed_key(branch))

    async def set_base(self, branch: str, ref: str) -> None:
        await self._git.run("config", "--local", base_key(branch), ref)

    async def unset_base(self, branch: str) -> None:
        await self._unset(base_key(branch))

    async def record_created(self, branch: str, base_ref: str) -> None:
        """Record a branch created by portree together with its base ref."""

        await self.mark_managed(branch)
        await self.set_base(branch, base_ref)
        logger.info("Recorded managed branch", extra={"branch": branch, "base_ref": base_ref})

    async def forget(self, branch: str) -> None:
        """Clear both keys for ``branch``; safe when neither exists."""

        await self.unmark_managed(branch)
        await self.unset_base(branch)

    async def _unset(self, key: str) -> None:
        result = await self._git.execute("config", "--local", "--unset", key)
        if result.ok or result.returncode == _UNSET_MISSING_KEY:
            return
        raise GitCommandError(result.args or ("config", "--local", "--unset", key), result.returncode, result.stderr)

    # -- reads ---------------------------------------------------------------

    async def snapshot(self) -> BranchMetadata:
        """Return the managed set and base map as currently persisted."""

        try:
            output = await self._git.run("config", "--local", "--list")
        except GitCommandError as exc:
            logger.warning("Unable to list git config: %s", exc)
            return BranchMetadata()
        return parse_config_listing(output)

    async def is_managed(self, branch: str) -> bool:
        return (await self.snapshot()).is_managed(branch)

    async def get_base(self, branch: str) -> str | None:
        return (await self.snapshot()).base_of(branch)

    async def list_managed(self) -> set[str]:
        return set((await self.snapshot()).managed)

    async def list_references(self, patterns: Sequence[str] | None = None) -> list[str]:
        """List short ref names matching ``patterns`` (local branches by default)."""

        query = list(patterns or DEFAULT_REF_PATTERNS)
        try:
            output = await self._git.run("for-each-ref", "--format=%(refname:short)", *query)
        except GitCommandError as exc:
            logger.warning("Unable to list references %s: %s", query, exc)
            return []

        seen: set[str] = set()
        refs: list[str] = []
        for line in output.splitlines():
            name = line.strip()
            if not name or name in seen:
                continue
            seen.add(name)
            refs.append(name)
        return refs


__all__ = ["BranchMetadataStore", "DEFAULT_REF_PATTERNS"]
