"""Data models for branch metadata kept in git config."""

from __future__ import annotations

from dataclasses import dataclass, field

KEY_SECTION = "branch"
MANAGED_SUFFIX = "portree-managed"
BASE_SUFFIX = "portree-base"


def managed_key(branch: str) -> str:
    return f"{KEY_SECTION}.{branch}.{MANAGED_SUFFIX}"


def base_key(branch: str) -> str:
    return f"{KEY_SECTION}.{branch}.{BASE_SUFFIX}"


@dataclass(slots=True)
class BranchMetadata:
    """Managed branches and the refs they were created from."""

    managed: frozenset[str] = frozenset()
    bases: dict[str, str] = field(default_factory=dict)

    def is_managed(self, branch: str) -> bool:
        return branch in self.managed

    def base_of(self, branch: str) -> str | None:
        return self.bases.get(branch)


def parse_config_listing(output: str) -> BranchMetadata:
    """Parse ``git config --list`` output into branch metadata.

    Keys look like ``branch.<name>.<variable>``; the name may itself contain
    dots, so the variable is split from the right. git lowercases section and
    variable names but keeps the subsection verbatim.
    """

    managed: list[str] = []
    bases: dict[str, str] = {}
    for line in output.splitlines():
        key, sep, value = line.partition("=")
        if not sep:
            continue
        section, dot, rest = key.partition(".")
        if not dot or section.lower() != KEY_SECTION:
            continue
        branch, dot, variable = rest.rpartition(".")
        if not dot or not branch:
            continue
        variable = variable.lower()
        if variable == MANAGED_SUFFIX:
            if value.strip().lower() in {"true", "yes", "on", "1"} and branch not in managed:
                managed.append(branch)
        elif variable == BASE_SUFFIX:
            bases[branch] = value.strip()

    managed_set = frozenset(managed)
    return BranchMetadata(
        managed=managed_set,
        bases={branch: ref for branch, ref in bases.items() if branch in managed_set},
    )


__all__ = [
    "BASE_SUFFIX",
    "BranchMetadata",
    "MANAGED_SUFFIX",
    "base_key",
    "managed_key",
    "parse_config_listing",
]
