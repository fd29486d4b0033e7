"""Utility helpers for the git runner."""

from __future__ import annotations

import os
from typing import Mapping

_SANITIZED_VARS = {
    "GIT_DIR",
    "GIT_WORK_TREE",
    "GIT_INDEX_FILE",
    "GIT_COMMON_DIR",
    "GIT_OBJECT_DIRECTORY",
    "GIT_PREFIX",
}


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return an environment where only the working directory selects the repository."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    # Porcelain output must not depend on the user's locale or pager.
    env["LC_ALL"] = "C"
    env["GIT_PAGER"] = "cat"
    if additional:
        env.update(additional)
    return env
