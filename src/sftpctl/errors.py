"""Error taxonomy shared by account, directive, and service operations.

Every failure surfaced by sftpctl derives from :class:`SftpctlError` and knows
the process exit code the CLI should terminate with. Errors propagate to the
caller untouched; nothing in the package retries or suppresses them.
"""
from __future__ import annotations

from collections.abc import Sequence
from typing import ClassVar

from .exit_codes import ExitCode


class SftpctlError(RuntimeError):
    """Base class for all sftpctl failures."""

    exit_code: ClassVar[ExitCode] = ExitCode.PROVIDER


class InvalidInputError(SftpctlError):
    """Raised for malformed names, paths, or directive lines."""

    exit_code = ExitCode.VALIDATION


class NotFoundError(SftpctlError):
    """Raised when a directive file or an expected account is missing."""

    exit_code = ExitCode.NOT_FOUND


class AlreadyExistsError(SftpctlError):
    """Raised when an account expected to be absent already exists."""

    exit_code = ExitCode.CONFLICT


class HostIOError(SftpctlError):
    """Raised when a tool cannot be spawned or a file cannot be read."""

    exit_code = ExitCode.ENVIRONMENT


class CommandFailedError(SftpctlError):
    """Raised when an external tool ran and exited non-zero.

    ``str(exc)`` is the tool's captured standard error, decoded verbatim.
    ``step`` names the operation stage that failed (``create``, ``delete``,
    ``identity``, ``password``, ``start``, ``stop``). ``identity_committed`` is
    true when a modify failed on the password step after ``usermod`` already
    applied the identity change.
    """

    exit_code = ExitCode.PROVIDER

    def __init__(
        self,
        stderr: bytes,
        *,
        command: Sequence[str] = (),
        returncode: int | None = None,
        step: str | None = None,
        identity_committed: bool = False,
    ) -> None:
        self.stderr = stderr
        self.command = list(command)
        self.returncode = returncode
        self.step = step
        self.identity_committed = identity_committed
        super().__init__(self._describe())

    def _describe(self) -> str:
        text = self.stderr.decode("utf-8", errors="replace")
        if text.strip():
            return text
        program = self.command[0] if self.command else "command"
        return f"{program} exited with status {self.returncode}"


__all__ = [
    "AlreadyExistsError",
    "CommandFailedError",
    "HostIOError",
    "InvalidInputError",
    "NotFoundError",
    "SftpctlError",
]
