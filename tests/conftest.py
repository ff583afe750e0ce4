"""Shared fixtures and fakes for the sftpctl test suite."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from sftpctl.accounts import AccountManager, StaticAccountLookup
from sftpctl.providers import ExecutionOutcome, SshdProvider


@dataclass
class Call:
    """One recorded invocation of :class:`FakeRunner`."""

    program: str
    args: list[str]
    stdin: bytes | None = None
    read_only: bool = False


@dataclass
class FakeRunner:
    """Command runner returning scripted outcomes keyed by program name."""

    failures: dict[str, bytes] = field(default_factory=dict)
    calls: list[Call] = field(default_factory=list)

    def fail(self, program: str, stderr: bytes = b"") -> None:
        """Make every later call to *program* exit with status 1."""
        self.failures[program] = stderr

    def run(
        self,
        program: str,
        args: Sequence[str],
        *,
        stdin: bytes | None = None,
        read_only: bool = False,
    ) -> ExecutionOutcome:
        self.calls.append(Call(program, list(args), stdin, read_only))
        command = (program, *args)
        if program in self.failures:
            return ExecutionOutcome(
                success=False,
                stderr=self.failures[program],
                command=command,
                returncode=1,
            )
        return ExecutionOutcome(success=True, command=command)

    @property
    def programs(self) -> list[str]:
        """Return the program names invoked so far, in order."""
        return [call.program for call in self.calls]


@pytest.fixture
def runner() -> FakeRunner:
    """Return a runner where every command succeeds until told otherwise."""
    return FakeRunner()


@pytest.fixture
def lookup() -> StaticAccountLookup:
    """Return an empty in-memory account database."""
    return StaticAccountLookup()


@pytest.fixture
def manager(lookup: StaticAccountLookup, runner: FakeRunner) -> AccountManager:
    """Return an account manager wired to the fakes."""
    return AccountManager(lookup=lookup, runner=runner, home_root=Path("/home"))


@pytest.fixture
def sshd(runner: FakeRunner) -> SshdProvider:
    """Return an sshd provider wired to the fake runner."""
    return SshdProvider(runner=runner)
