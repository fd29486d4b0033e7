"""Tool registration for the portree MCP server."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP

from ..branches import BranchMetadataStore
from ..git import GitCommandError
from ..ports import PortAllocator
from ..worktrees import (
    RecentStore,
    WorktreeError,
    WorktreeManager,
    WorktreeRecord,
    WorktreeScanner,
    port_info,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    list_worktrees: Any
    open_worktree: Any
    create_worktree: Any
    remove_worktree: Any
    delete_branch: Any
    list_managed_branches: Any
    list_references: Any
    copy_port_info: Any
    assign_port: Any


def _now_ms() -> int:
    return int(time.time() * 1000)


def _record_payload(record: WorktreeRecord, now_ms: int) -> dict[str, Any]:
    payload = record.to_dict()
    payload["description"] = record.describe(now_ms)
    payload["days_since_created"] = record.days_since_created(now_ms)
    return payload


def _failure(exc: Exception) -> dict[str, Any]:
    return {"ok": False, "error": str(exc)}


def _find(records: list[WorktreeRecord], path: str) -> WorktreeRecord | None:
    for record in records:
        if record.path == path:
            return record
    return None


def register_tools(
    server: FastMCP,
    *,
    scanner: WorktreeScanner,
    manager: WorktreeManager,
    branches: BranchMetadataStore,
    allocator: PortAllocator,
    recents: RecentStore | None,
) -> ToolHandles:
    """Register portree's MCP tools on the server."""

    async def _list_worktrees(include_recent: bool = True, context: Context | None = None) -> dict[str, Any]:
        """Scan the repository and return every worktree with its ports."""

        records = await scanner.scan()
        now_ms = _now_ms()
        payload: dict[str, Any] = {"worktrees": [_record_payload(record, now_ms) for record in records]}
        if include_recent and recents is not None:
            payload["recent"] = [_record_payload(record, now_ms) for record in recents.select(records)]
        _emit_log(context, "debug", "Listed worktrees", extra={"count": len(records)})
        return payload

    async def _open_worktree(path: str, context: Context | None = None) -> dict[str, Any]:
        """Resolve a worktree by path and remember it as recently opened."""

        record = _find(await scanner.scan(), path)
        if record is None:
            return _failure(ValueError(f"No worktree at {path}"))
        if recents is not None:
            recents.track(record)
        _emit_log(context, "info", "Opened worktree", extra={"path": path})
        return {"ok": True, "worktree": _record_payload(record, _now_ms())}

    async def _create_worktree(
        branch: str,
        *,
        path: str | None = None,
        base_ref: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Create a worktree, branching from base_ref when the branch does not exist yet."""

        try:
            created = await manager.create(branch, path=path, base_ref=base_ref)
        except (GitCommandError, ValueError) as exc:
            _emit_log(context, "error", "Failed to create worktree", extra={"branch": branch, "error": str(exc)})
            return _failure(exc)
        _emit_log(context, "info", created.message, extra={"path": created.path})
        return {"ok": True, **created.to_dict()}

    async def _remove_worktree(path: str, context: Context | None = None) -> dict[str, Any]:
        """Remove a worktree directory through git."""

        try:
            await manager.remove(path)
        except GitCommandError as exc:
            _emit_log(context, "error", "Failed to remove worktree", extra={"path": path, "error": str(exc)})
            return _failure(exc)
        return {"ok": True, "message": f"Removed worktree {path}"}

    async def _delete_branch(branch: str, force: bool = False, context: Context | None = None) -> dict[str, Any]:
        """Delete a branch created by portree along with the worktree holding it."""

        try:
            removed = await manager.delete_branch(branch, require_managed=not force)
        except (WorktreeError, GitCommandError) as exc:
            _emit_log(context, "warning", "Branch deletion refused or failed", extra={"branch": branch, "error": str(exc)})
            return _failure(exc)
        return {"ok": True, "branch": branch, "removed_worktrees": removed}

    async def _list_managed_branches(context: Context | None = None) -> list[dict[str, Any]]:
        """List branches portree created that still exist, with their base refs."""

        snapshot = await branches.snapshot()
        deletable = await manager.deletable_branches()
        _emit_log(context, "debug", "Listed managed branches", extra={"count": len(deletable)})
        return [{"branch": branch, "base": snapshot.base_of(branch)} for branch in deletable]

    async def _list_references(patterns: list[str] | None = None, context: Context | None = None) -> list[str]:
        """List short ref names matching the given patterns (local branches by default)."""

        return await branches.list_references(patterns)

    async def _copy_port_info(path: str, context: Context | None = None) -> dict[str, Any]:
        """Return ``service: port`` lines for a worktree."""

        record = _find(await scanner.scan(), path)
        if record is None:
            return _failure(ValueError(f"No worktree at {path}"))
        if not record.services:
            return {"ok": True, "text": "", "message": "No services detected for this worktree yet."}
        return {"ok": True, "text": port_info(record)}

    def _assign_port(service_name: str, service_type: str = "unknown", ordinal: int = 0) -> dict[str, Any]:
        """Compute the port a service would get at the given worktree ordinal."""

        port = allocator.assign(service_name, service_type, ordinal)
        zone = allocator.zone_base(service_type)
        return {
            "service": service_name,
            "type": service_type,
            "ordinal": ordinal,
            "port": port,
            "zone": [zone, zone + allocator.zone_size - 1],
        }

    tool_list = server.tool(
        name="list_worktrees",
        description="Scan git worktrees and return branch, dirtiness, age and service ports for each.",
    )(_list_worktrees)

    tool_open = server.tool(
        name="open_worktree",
        description="Look up a worktree by path and record it in the recently opened list.",
    )(_open_worktree)

    tool_create = server.tool(
        name="create_worktree",
        description=(
            "Create a git worktree for a branch. New branches are created from base_ref "
            "and recorded as managed; service ports are written to the env file."
        ),
        annotations={
            "safety": {
                "level": "caution",
                "notes": "Creates a directory and possibly a branch in the repository",
            }
        },
    )(_create_worktree)

    tool_remove = server.tool(
        name="remove_worktree",
        description="Remove a git worktree by path.",
        annotations={"safety": {"level": "destructive"}},
    )(_remove_worktree)

    tool_delete = server.tool(
        name="delete_branch",
        description=(
            "Delete a managed branch and its worktree. Refused when the branch is checked "
            "out in more than one worktree; force=true allows unmanaged branches."
        ),
        annotations={"safety": {"level": "destructive"}},
    )(_delete_branch)

    tool_managed = server.tool(
        name="list_managed_branches",
        description="List branches created by portree that can be deleted, with their base refs.",
    )(_list_managed_branches)

    tool_refs = server.tool(
        name="list_references",
        description="List git references matching for-each-ref patterns.",
    )(_list_references)

    tool_copy = server.tool(
        name="copy_port_info",
        description="Return the service-to-port mapping of a worktree as text.",
    )(_copy_port_info)

    tool_assign = server.tool(
        name="assign_port",
        description="Compute the deterministic port for a service name, type and worktree ordinal.",
    )(_assign_port)

    return ToolHandles(
        list_worktrees=tool_list,
        open_worktree=tool_open,
        create_worktree=tool_create,
        remove_worktree=tool_remove,
        delete_branch=tool_delete,
        list_managed_branches=tool_managed,
        list_references=tool_refs,
        copy_port_info=tool_copy,
        assign_port=tool_assign,
    )


__all__ = ["register_tools", "ToolHandles"]


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)
