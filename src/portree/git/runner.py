"""Async runner for the git CLI."""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .utils import sanitize_environment

logger = logging.getLogger(__name__)


class GitRunnerError(RuntimeError):
    """Base class for git runner errors."""


class GitNotFoundError(GitRunnerError):
    """Raised when the git executable cannot be located."""


class GitCommandError(GitRunnerError):
    """Raised when a git invocation exits non-zero or cannot be spawned."""

    def __init__(self, args: tuple[str, ...], returncode: int | None, stderr: str) -> None:
        self.command = tuple(args)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or f"exit status {returncode}"
        super().__init__(f"git {' '.join(self.command)} failed: {detail}")


@dataclass(slots=True)
class GitExecutionResult:
    """Holds the outcome of a git invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitRunner:
    """Execute git commands asynchronously against a fixed working directory."""

    def __init__(self, cwd: Path | str, executable: Path | None = None) -> None:
        self._cwd = Path(cwd)
        self._executable_path = self._resolve_executable(executable)

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise GitNotFoundError(f"git executable not found at {candidate}")

        binary = shutil.which("git")
        if binary is None:
            raise GitNotFoundError("git executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    @property
    def cwd(self) -> Path:
        return self._cwd

    async def run(self, *args: str) -> str:
        """Run git and return its trimmed stdout, raising on failure."""

        result = await self.execute(*args)
        if not result.ok:
            raise GitCommandError(args, result.returncode, result.stderr)
        return result.stdout.strip()

    async def has_ref(self, ref: str) -> bool:
        """Return whether ``ref`` resolves; any failure reads as absent."""

        try:
            result = await self.execute("rev-parse", "--verify", "--quiet", ref)
        except GitCommandError:
            return False
        return result.ok

    async def execute(self, *args: str) -> GitExecutionResult:
        """Invoke git without interpreting the exit status."""

        return await self._invoke(*args)

    async def _invoke(self, *args: str) -> GitExecutionResult:
        cmd = [str(self._executable_path), *args]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(self._cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=sanitize_environment(),
            )
        except OSError as exc:
            raise GitCommandError(args, None, str(exc)) from exc
        stdout_bytes, stderr_bytes = await process.communicate()
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        logger.debug("git %s -> %s", " ".join(args), process.returncode)
        return GitExecutionResult(args=tuple(args), returncode=process.returncode, stdout=stdout, stderr=stderr)


Responder = Callable[[tuple[str, ...]], GitExecutionResult | None]


class FakeGitRunner(GitRunner):
    """Test double that simulates git responses.

    Queued ``responses`` are consumed in order; a ``responder`` callable, when
    given, is asked first and may return ``None`` to fall through to the queue.
    """

    def __init__(  # type: ignore[override]
        self,
        responses: Iterable[GitExecutionResult] | None = None,
        *,
        responder: Responder | None = None,
        cwd: Path | str = "/tmp/fake-repo",
    ) -> None:
        self._responses = list(responses or [])
        self._responder = responder
        self._invocations: list[tuple[str, ...]] = []
        self._executable_path = Path("/tmp/fake-git")
        self._cwd = Path(cwd)

    async def _invoke(self, *args: str) -> GitExecutionResult:  # type: ignore[override]
        self._invocations.append(tuple(args))
        if self._responder is not None:
            answer = self._responder(tuple(args))
            if answer is not None:
                return answer
        if self._responses:
            return self._responses.pop(0)
        return GitExecutionResult(args=tuple(args), returncode=0, stdout="", stderr="")

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations


def ok(stdout: str = "") -> GitExecutionResult:
    """Build a successful result, mostly for scripting fakes."""

    return GitExecutionResult(args=(), returncode=0, stdout=stdout, stderr="")


def failed(stderr: str = "", returncode: int = 1) -> GitExecutionResult:
    """Build a failed result, mostly for scripting fakes."""

    return GitExecutionResult(args=(), returncode=returncode, stdout="", stderr=stderr)
