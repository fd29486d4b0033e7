"""Directory-name service classification.

The default patterns check `api` before `backend`, so `api-server` lands in the
api zone (5500) rather than the backend zone. A pattern file set through
`PORTREE_SERVICE_PATTERNS` can restore a `(back|api|server)` backend rule ahead
of admin and api.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Iterable, Protocol

import yaml
from pydantic import ValidationError

from .models import ServiceInfo, ServicePattern


class ServicePatternError(RuntimeError):
    """Raised when a service pattern file cannot be parsed."""


DEFAULT_PATTERNS: tuple[ServicePattern, ...] = (
    ServicePattern(type="frontend", pattern=r"(front|web|ui)"),
    ServicePattern(type="admin", pattern=r"(admin|cms)"),
    ServicePattern(type="api", pattern=r"api"),
    ServicePattern(type="backend", pattern=r"(back|server)"),
)


class ServiceDetectorProtocol(Protocol):
    """Anything that can list the services of a worktree deterministically."""

    async def detect(self, worktree_path: str) -> list[ServiceInfo]:
        ...


class ServiceDetector:
    """Treat each top-level directory of a worktree as a service."""

    def __init__(self, patterns: Iterable[ServicePattern] | None = None) -> None:
        self._patterns = tuple(DEFAULT_PATTERNS if patterns is None else patterns)

    @property
    def patterns(self) -> tuple[ServicePattern, ...]:
        return self._patterns

    async def detect(self, worktree_path: str) -> list[ServiceInfo]:
        names = await asyncio.to_thread(_list_service_dirs, worktree_path)
        return [
            ServiceInfo(name=name, type=self.classify(name), location=os.path.join(worktree_path, name))
            for name in names
        ]

    def classify(self, name: str) -> str:
        for pattern in self._patterns:
            if pattern.matches(name):
                return pattern.type
        return "unknown"


def _list_service_dirs(worktree_path: str) -> list[str]:
    with os.scandir(worktree_path) as entries:
        names = [
            entry.name
            for entry in entries
            if not entry.name.startswith(".") and entry.is_dir(follow_symlinks=False)
        ]
    return sorted(names)


def load_service_patterns(path: Path) -> list[ServicePattern]:
    """Load an ordered list of ``{type, pattern}`` mappings from YAML."""

    try:
        document = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ServicePatternError(f"Unable to read service patterns from {path}: {exc}") from exc
    except yaml.YAMLError as exc:  # pragma: no cover - library type
        raise ServicePatternError(f"Failed to parse YAML in {path}: {exc}") from exc

    if document is None:
        return []
    if isinstance(document, dict):
        document = document.get("services", [])
    if not isinstance(document, list):
        raise ServicePatternError(f"Service patterns in {path} must be a list")

    patterns: list[ServicePattern] = []
    errors: list[str] = []
    for index, item in enumerate(document):
        try:
            patterns.append(ServicePattern.model_validate(item))
        except ValidationError as exc:
            errors.append(f"entry {index}: {exc}")
    if errors:
        raise ServicePatternError(f"Invalid service patterns in {path}: " + "; ".join(errors))
    return patterns


__all__ = [
    "DEFAULT_PATTERNS",
    "ServiceDetector",
    "ServiceDetectorProtocol",
    "ServicePatternError",
    "load_service_patterns",
]
