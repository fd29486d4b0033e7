"""Most-recently-opened worktrees, persisted as YAML."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterable

import yaml

from .models import WorktreeRecord

logger = logging.getLogger(__name__)

RECENT_LIMIT = 3


@dataclass(slots=True)
class RecentEntry:
    path: str
    label: str
    branch: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecentEntry | None:
        path = data.get("path")
        if not isinstance(path, str) or not path:
            return None
        return cls(path=path, label=str(data.get("label") or path), branch=data.get("branch"))


class RecentStore:
    """Keep the last ``limit`` opened worktrees, newest first, unique by path."""

    def __init__(self, path: Path, *, limit: int = RECENT_LIMIT) -> None:
        self._path = Path(path)
        self._limit = limit

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[RecentEntry]:
        if not self._path.exists():
            return []
        try:
            document = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Ignoring unreadable recents file %s: %s", self._path, exc)
            return []
        if not isinstance(document, list):
            return []
        entries = [RecentEntry.from_dict(item) for item in document if isinstance(item, dict)]
        return [entry for entry in entries if entry is not None][: self._limit]

    def track(self, record: WorktreeRecord) -> list[RecentEntry]:
        entry = RecentEntry(path=_resolve(record.path), label=record.display_name, branch=record.branch)
        current = [item for item in self.load() if _resolve(item.path) != entry.path]
        entries = [entry, *current][: self._limit]
        self._save(entries)
        return entries

    def select(self, records: Iterable[WorktreeRecord]) -> list[WorktreeRecord]:
        """Return the scanned records that are in the recents list, in recents order."""

        by_path = {_resolve(record.path): record for record in records}
        return [by_path[key] for key in (_resolve(entry.path) for entry in self.load()) if key in by_path]

    def _save(self, entries: list[RecentEntry]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self._path.parent), suffix=".tmp")
        try:
            with open(fd, "w", encoding="utf-8") as handle:
                yaml.safe_dump([asdict(entry) for entry in entries], handle, sort_keys=False)
            Path(tmp).replace(self._path)
        except Exception:
            Path(tmp).unlink(missing_ok=True)
            raise


def _resolve(path: str) -> str:
    return os.path.normcase(os.path.abspath(path))


__all__ = ["RECENT_LIMIT", "RecentEntry", "RecentStore"]
