"""portree diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json
import time
from pathlib import Path

from portree.branches import BranchMetadataStore
from portree.config import PortreeSettings
from portree.git import GitNotFoundError, GitRunner
from portree.ports import ServiceDetector, ServicePatternError
from portree.ports.models import SERVICE_TYPES
from portree.server import build_allocator, build_detector
from portree.worktrees import WorktreeScanner


def load_git(settings: PortreeSettings) -> GitRunner:
    try:
        return GitRunner(
            settings.repo_path.expanduser().resolve(),
            Path(settings.git_path) if settings.git_path else None,
        )
    except GitNotFoundError as exc:
        print(f"git unavailable: {exc}")
        raise SystemExit(1)


def load_detector(settings: PortreeSettings) -> ServiceDetector:
    try:
        return build_detector(settings, strict=True)
    except ServicePatternError as exc:
        print(f"Invalid service patterns: {exc}")
        raise SystemExit(1)


def cmd_worktrees(args: argparse.Namespace) -> None:
    settings = PortreeSettings()
    git = load_git(settings)
    scanner = WorktreeScanner(
        root_path=git.cwd,
        git=git,
        allocator=build_allocator(settings),
        detector=load_detector(settings),
    )
    records = asyncio.run(scanner.scan())
    if args.json:
        print(json.dumps([record.to_dict() for record in records], indent=2))
        return

    now_ms = int(time.time() * 1000)
    for record in records:
        print(f"{record.display_name} [{record.describe(now_ms)}] -> {record.path}")
        for service in record.services:
            print(f"    {service.service_name} ({service.service_type}): {service.port}")


def cmd_port(args: argparse.Namespace) -> None:
    settings = PortreeSettings()
    allocator = build_allocator(settings)
    port = allocator.assign(args.service, args.type, args.ordinal)
    print(
        json.dumps(
            {
                "service": args.service,
                "type": args.type,
                "ordinal": args.ordinal,
                "zone_base": allocator.zone_base(args.type),
                "zone_size": allocator.zone_size,
                "port": port,
            },
            indent=2,
        )
    )


def cmd_branches(args: argparse.Namespace) -> None:
    settings = PortreeSettings()
    store = BranchMetadataStore(load_git(settings))

    async def _collect() -> dict[str, object]:
        snapshot = await store.snapshot()
        payload: dict[str, object] = {
            "managed": sorted(snapshot.managed),
            "bases": dict(sorted(snapshot.bases.items())),
        }
        if args.refs is not None:
            payload["references"] = await store.list_references(args.refs or None)
        return payload

    print(json.dumps(asyncio.run(_collect()), indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="portree diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_worktrees = sub.add_parser("worktrees", help="Scan worktrees with their service ports")
    p_worktrees.add_argument("--json", action="store_true", help="Output JSON")
    p_worktrees.set_defaults(func=cmd_worktrees)

    p_port = sub.add_parser("port", help="Compute the port for one service")
    p_port.add_argument("service")
    p_port.add_argument(
        "--type",
        default="unknown",
        help=f"Service type ({', '.join(SERVICE_TYPES)}); other types use the default zone",
    )
    p_port.add_argument("--ordinal", type=int, default=0, help="Worktree ordinal")
    p_port.set_defaults(func=cmd_port)

    p_branches = sub.add_parser("branches", help="Show managed branches and their base refs")
    p_branches.add_argument(
        "--refs",
        nargs="*",
        default=None,
        help="Also list references matching these patterns",
    )
    p_branches.set_defaults(func=cmd_branches)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
