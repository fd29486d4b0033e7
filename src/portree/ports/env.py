"""Write port assignments into a worktree's env file."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Mapping, Sequence

from .models import ServiceAssignment

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def port_env(assignments: Sequence[ServiceAssignment]) -> dict[str, int]:
    """Build ``<NAME>_PORT`` variables plus a ``PORT`` fallback for the first service."""

    values: dict[str, int] = {}
    for assignment in assignments:
        key = f"{_NON_ALNUM.sub('_', assignment.service_name).upper()}_PORT"
        values[key] = assignment.port
    if "PORT" not in values and assignments:
        values["PORT"] = assignments[0].port
    return values


class EnvWriter:
    def write(self, target: Path | str, values: Mapping[str, str | int]) -> Path:
        path = Path(target)
        path.parent.mkdir(parents=True, exist_ok=True)
        content = "\n".join(f"{key}={value}" for key, value in values.items())
        path.write_text(content + "\n" if content else "", encoding="utf-8")
        return path


__all__ = ["EnvWriter", "port_env"]
