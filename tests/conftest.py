from __future__ import annotations

from pathlib import Path

import pytest

from portree.git.runner import FakeGitRunner, GitExecutionResult, failed, ok


class ConfigResponder:
    """Emulates ``git config --local`` and ``for-each-ref`` over in-memory state."""

    def __init__(self, refs: list[str] | None = None) -> None:
        self.values: dict[str, str] = {"core.bare": "false"}
        self.refs = list(refs or [])
        self.porcelain = ""
        self.status: dict[str, str] = {}
        self.existing_refs: set[str] = set()

    def __call__(self, args: tuple[str, ...]) -> GitExecutionResult | None:
        if args[:2] == ("config", "--local"):
            rest = args[2:]
            if rest == ("--list",):
                return ok("\n".join(f"{key}={value}" for key, value in self.values.items()) + "\n")
            if rest and rest[0] == "--unset":
                key = _normalize_key(rest[1])
                if key not in self.values:
                    return failed("", returncode=5)
                del self.values[key]
                return ok()
            key, value = rest
            self.values[_normalize_key(key)] = value
            return ok()
        if args and args[0] == "for-each-ref":
            return ok("\n".join(self.refs) + "\n")
        if args[:3] == ("worktree", "list", "--porcelain"):
            return ok(self.porcelain)
        if args and args[0] == "-C" and args[2:] == ("status", "--porcelain"):
            return ok(self.status.get(args[1], ""))
        if args[:3] == ("rev-parse", "--verify", "--quiet"):
            return ok("abc123\n") if args[3] in self.existing_refs else failed("", returncode=1)
        return None


def _normalize_key(key: str) -> str:
    # git lowercases section and variable names, keeps the subsection.
    section, _, rest = key.partition(".")
    subsection, _, variable = rest.rpartition(".")
    return f"{section.lower()}.{subsection}.{variable.lower()}"


def porcelain(*blocks: dict[str, str]) -> str:
    chunks = []
    for block in blocks:
        lines = [f"worktree {block['path']}"]
        if "head" in block:
            lines.append(f"HEAD {block['head']}")
        if "branch" in block:
            lines.append(f"branch {block['branch']}")
        else:
            lines.append("detached")
        chunks.append("\n".join(lines))
    return "\n\n".join(chunks) + "\n"


@pytest.fixture()
def config_responder() -> ConfigResponder:
    return ConfigResponder()


@pytest.fixture()
def fake_git(config_responder: ConfigResponder, tmp_path: Path) -> FakeGitRunner:
    return FakeGitRunner(responder=config_responder, cwd=tmp_path)


@pytest.fixture()
def make_porcelain():
    return porcelain
