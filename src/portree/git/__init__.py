"""git CLI orchestration utilities."""

from .runner import (
    FakeGitRunner,
    GitCommandError,
    GitExecutionResult,
    GitNotFoundError,
    GitRunner,
    GitRunnerError,
)

__all__ = [
    "FakeGitRunner",
    "GitRunner",
    "GitExecutionResult",
    "GitRunnerError",
    "GitNotFoundError",
    "GitCommandError",
]
