from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from portree.branches import BranchMetadataStore
from portree.git.runner import FakeGitRunner, failed
from portree.ports import PortAllocator, ServiceDetector
from portree.tools import register_tools
from portree.worktrees import RecentStore, WorktreeManager, WorktreeScanner


class StubTool:
    def __init__(self, fn, name):
        self.fn = fn
        self.name = name


class StubServer:
    def __init__(self) -> None:
        self._tools: dict[str, StubTool] = {}

    def tool(self, *args, **kwargs):
        provided_name = None
        if args and isinstance(args[0], str):
            provided_name = args[0]
        provided_name = kwargs.get("name", provided_name)

        def decorator(fn):
            tool_name = provided_name or fn.__name__
            tool = StubTool(fn, tool_name)
            self._tools[tool_name] = tool
            return tool

        return decorator


def register(root: Path, git: FakeGitRunner, recents: RecentStore | None = None):
    allocator = PortAllocator()
    branches = BranchMetadataStore(git)
    scanner = WorktreeScanner(root_path=root, git=git, allocator=allocator, detector=ServiceDetector())
    manager = WorktreeManager(root_path=root, git=git, scanner=scanner, branches=branches)
    server = StubServer()
    handles = register_tools(
        server,
        scanner=scanner,
        manager=manager,
        branches=branches,
        allocator=allocator,
        recents=recents,
    )
    return server, handles


@pytest.fixture()
def two_worktrees(tmp_path: Path, config_responder, make_porcelain) -> dict[str, Path]:
    root = tmp_path / "repo"
    feature = tmp_path / "wt-feature"
    (root / "frontend-app").mkdir(parents=True)
    (feature / "frontend-app").mkdir(parents=True)
    (feature / "backend").mkdir()
    config_responder.porcelain = make_porcelain(
        {"path": str(root), "branch": "refs/heads/main"},
        {"path": str(feature), "branch": "refs/heads/feature"},
    )
    return {"root": root, "feature": feature}


def test_all_tools_are_registered(tmp_path: Path, fake_git) -> None:
    server, _ = register(tmp_path, fake_git)

    assert set(server._tools) == {
        "list_worktrees",
        "open_worktree",
        "create_worktree",
        "remove_worktree",
        "delete_branch",
        "list_managed_branches",
        "list_references",
        "copy_port_info",
        "assign_port",
    }


def test_list_worktrees_includes_ports_and_recent(two_worktrees, fake_git, tmp_path: Path) -> None:
    recents = RecentStore(tmp_path / "recent.yaml")
    _, handles = register(two_worktrees["root"], fake_git, recents)

    opened = asyncio.run(handles.open_worktree.fn(str(two_worktrees["feature"])))
    payload = asyncio.run(handles.list_worktrees.fn())

    assert opened["ok"] is True
    assert [item["name"] for item in payload["worktrees"]] == ["main", "feature"]
    assert payload["worktrees"][0]["services"][0]["port"] == 3034
    assert [item["name"] for item in payload["recent"]] == ["feature"]
    assert payload["worktrees"][1]["description"].startswith(("0d", "Δ"))


def test_open_unknown_worktree_reports_error(two_worktrees, fake_git, tmp_path: Path) -> None:
    _, handles = register(two_worktrees["root"], fake_git, RecentStore(tmp_path / "recent.yaml"))

    result = asyncio.run(handles.open_worktree.fn("/nowhere"))

    assert result["ok"] is False
    assert "/nowhere" in result["error"]


def test_copy_port_info_text(two_worktrees, fake_git) -> None:
    _, handles = register(two_worktrees["root"], fake_git)

    result = asyncio.run(handles.copy_port_info.fn(str(two_worktrees["feature"])))

    allocator = PortAllocator()
    assert result == {
        "ok": True,
        "text": (
            f"backend: {allocator.assign('backend', 'backend', 1)}\n"
            f"frontend-app: {allocator.assign('frontend-app', 'frontend', 1)}"
        ),
    }


def test_copy_port_info_without_services(tmp_path: Path, fake_git, config_responder, make_porcelain) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()
    config_responder.porcelain = make_porcelain({"path": str(empty), "branch": "refs/heads/main"})
    _, handles = register(tmp_path, fake_git)

    result = asyncio.run(handles.copy_port_info.fn(str(empty)))

    assert result["ok"] is True
    assert result["text"] == ""


def test_delete_branch_refusal_is_reported(tmp_path: Path, fake_git, config_responder, make_porcelain) -> None:
    config_responder.values["branch.shared.portree-managed"] = "true"
    config_responder.porcelain = make_porcelain(
        {"path": str(tmp_path / "a"), "branch": "refs/heads/shared"},
        {"path": str(tmp_path / "b"), "branch": "refs/heads/shared"},
    )
    _, handles = register(tmp_path, fake_git)

    result = asyncio.run(handles.delete_branch.fn("shared"))

    assert result["ok"] is False
    assert "checked out in 2 worktrees" in result["error"]
    assert not any(call[:2] == ("branch", "-D") for call in fake_git.invocations)


def test_delete_unmanaged_branch_needs_force(tmp_path: Path, fake_git) -> None:
    _, handles = register(tmp_path, fake_git)

    refused = asyncio.run(handles.delete_branch.fn("manual"))
    forced = asyncio.run(handles.delete_branch.fn("manual", force=True))

    assert refused["ok"] is False
    assert forced == {"ok": True, "branch": "manual", "removed_worktrees": []}


def test_create_worktree_failure_is_reported(tmp_path: Path, config_responder) -> None:
    def responder(args):
        if args[:2] == ("worktree", "add"):
            return failed("fatal: invalid reference: origin/main", returncode=128)
        return config_responder(args)

    _, handles = register(tmp_path, FakeGitRunner(responder=responder))

    result = asyncio.run(handles.create_worktree.fn("topic"))

    assert result["ok"] is False
    assert "invalid reference" in result["error"]


def test_create_worktree_success_payload(tmp_path: Path, fake_git) -> None:
    _, handles = register(tmp_path, fake_git)

    result = asyncio.run(handles.create_worktree.fn("topic", base_ref="develop"))

    assert result["ok"] is True
    assert result["created_branch"] is True
    assert result["reference"] == "develop"
    assert result["path"] == str(tmp_path / "worktrees" / "topic")


def test_remove_worktree_failure_is_reported(tmp_path: Path) -> None:
    git = FakeGitRunner([failed("fatal: contains modified or untracked files", returncode=128)])
    _, handles = register(tmp_path, git)

    result = asyncio.run(handles.remove_worktree.fn("/repo/worktrees/x"))

    assert result["ok"] is False
    assert "modified" in result["error"]


def test_list_managed_branches_with_bases(tmp_path: Path, fake_git, config_responder) -> None:
    config_responder.values["branch.topic.portree-managed"] = "true"
    config_responder.values["branch.topic.portree-base"] = "origin/main"
    config_responder.values["branch.gone.portree-managed"] = "true"
    config_responder.refs = ["main", "topic"]
    _, handles = register(tmp_path, fake_git)

    assert asyncio.run(handles.list_managed_branches.fn()) == [{"branch": "topic", "base": "origin/main"}]
    assert asyncio.run(handles.list_references.fn()) == ["main", "topic"]


def test_assign_port_reports_zone(tmp_path: Path, fake_git) -> None:
    _, handles = register(tmp_path, fake_git)

    result = handles.assign_port.fn("backend", "backend", 0)

    assert result == {
        "service": "backend",
        "type": "backend",
        "ordinal": 0,
        "port": 4044,
        "zone": [4000, 4099],
    }
