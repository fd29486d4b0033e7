"""Git worktree manager with deterministic per-worktree service ports."""

__version__ = "0.3.0"

__all__ = ["__version__"]
