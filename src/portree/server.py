"""FastMCP server bootstrap for portree."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastmcp import Context, FastMCP

from . import __version__
from .branches import BranchMetadataStore
from .config import PortreeSettings, get_settings
from .git import GitNotFoundError, GitRunner
from .ports import PortAllocator, ServiceDetector, ServicePatternError, load_service_patterns
from .tools import register_tools
from .worktrees import RecentStore, WorktreeManager, WorktreeScanner


def configure_logging(level: str) -> None:
    """Configure root logging for the portree server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def build_detector(settings: PortreeSettings, *, strict: bool = False) -> ServiceDetector:
    """Service detector using the configured pattern file, if any.

    A broken pattern file falls back to the defaults unless ``strict`` is set.
    """

    if settings.service_patterns_path is None:
        return ServiceDetector()
    try:
        return ServiceDetector(load_service_patterns(settings.service_patterns_path))
    except ServicePatternError as exc:
        if strict:
            raise
        logging.getLogger(__name__).warning("Falling back to default service patterns: %s", exc)
        return ServiceDetector()


def build_allocator(settings: PortreeSettings) -> PortAllocator:
    return PortAllocator(
        settings.base_ports,
        zone_size=settings.zone_size,
        max_offset=settings.max_offset,
        default_base_port=settings.default_base_port,
    )


def create_server(
    settings: Optional[PortreeSettings] = None,
    git: GitRunner | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server wired to one repository."""

    settings = settings or get_settings()
    root = Path(settings.repo_path)

    if git is None:
        git = GitRunner(root, Path(settings.git_path) if settings.git_path else None)
    git_metadata = {"configured_path": settings.git_path, "executable": str(git.executable)}

    allocator = build_allocator(settings)
    detector = build_detector(settings)
    branches = BranchMetadataStore(git)
    scanner = WorktreeScanner(root_path=root, git=git, allocator=allocator, detector=detector)
    manager = WorktreeManager(
        root_path=root,
        git=git,
        scanner=scanner,
        branches=branches,
        worktrees_dir=settings.worktrees_dir,
        env_file_name=settings.env_file_name,
        default_base_ref=settings.default_base_ref,
    )
    recents = RecentStore(settings.recents_path)

    server = FastMCP(
        name="portree",
        version=__version__,
        instructions=(
            "portree lists the git worktrees of one repository and gives every service "
            "directory in each worktree a deterministic port. Use the tools to scan, "
            "create and remove worktrees and to clean up branches portree created."
        ),
    )

    handles = register_tools(
        server,
        scanner=scanner,
        manager=manager,
        branches=branches,
        allocator=allocator,
        recents=recents,
    )

    @server.resource(
        "resource://portree/status",
        name="portree_status",
        title="portree Status",
        description="Repository, port zone and worktree summary for the portree server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    async def status_resource(context: Context) -> str:
        """Return a JSON string summarizing the repository state."""

        records = await scanner.scan()
        managed = await branches.list_managed()
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "repository": str(root),
            "git": git_metadata,
            "ports": {
                "zone_size": allocator.zone_size,
                "base_ports": allocator.base_ports,
                "max_offset": settings.max_offset,
            },
            "worktrees": {
                "count": len(records),
                "dirty": sum(1 for record in records if record.is_dirty),
                "services": sum(len(record.services) for record in records),
            },
            "managed_branches": sorted(managed),
            "recent": [entry.path for entry in recents.load()],
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    setattr(server, "git_runner", git)
    setattr(server, "git_metadata", git_metadata)
    setattr(server, "scanner", scanner)
    setattr(server, "manager", manager)
    setattr(server, "branch_store", branches)
    setattr(server, "allocator", allocator)
    setattr(server, "recents", recents)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the portree MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        server = create_server(settings)
    except GitNotFoundError as exc:
        logging.getLogger(__name__).error("Cannot start portree: %s", exc)
        raise SystemExit(1) from exc

    logging.getLogger(__name__).info(
        "Launching portree MCP server",
        extra={
            "version": __version__,
            "repository": str(settings.repo_path),
            "log_level": settings.log_level,
        },
    )
    server.run()


if __name__ == "__main__":
    main()
