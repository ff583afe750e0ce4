"""Subprocess execution for the privileged account and service tools."""
from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from ..errors import HostIOError


@dataclass(slots=True, frozen=True)
class ExecutionOutcome:
    """Normalised result of running an external command."""

    success: bool
    stderr: bytes = b""
    command: tuple[str, ...] = ()
    returncode: int = 0


class CommandRunner(Protocol):
    """Capability for running an external program to completion."""

    def run(
        self,
        program: str,
        args: Sequence[str],
        *,
        stdin: bytes | None = None,
        read_only: bool = False,
    ) -> ExecutionOutcome:
        """Run *program* with *args* and return its outcome.

        *read_only* marks a query that changes nothing on the host.
        """
        ...


Observer = Callable[[ExecutionOutcome], None]


@dataclass(slots=True)
class SubprocessRunner:
    """Run commands with :mod:`subprocess`, blocking until they exit.

    A non-zero exit is reported through :class:`ExecutionOutcome`; only a
    failure to spawn the program raises :class:`HostIOError`. In ``dry_run``
    mode mutating commands are not spawned and report success; read-only
    queries still run so their answers reflect the host. The observer is
    notified of mutating commands only.
    """

    dry_run: bool = False
    observer: Observer | None = None
    history: list[ExecutionOutcome] = field(default_factory=list)

    def run(
        self,
        program: str,
        args: Sequence[str],
        *,
        stdin: bytes | None = None,
        read_only: bool = False,
    ) -> ExecutionOutcome:
        command = (program, *args)
        if self.dry_run and not read_only:
            return self._record(ExecutionOutcome(success=True, command=command))
        try:
            result = subprocess.run(  # noqa: S603
                list(command),
                input=stdin,
                capture_output=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise HostIOError(f"{program} not found: {exc}") from exc
        except PermissionError as exc:
            raise HostIOError(f"{program} could not be executed: {exc}") from exc
        except OSError as exc:
            raise HostIOError(f"Failed to spawn {program}: {exc}") from exc
        outcome = ExecutionOutcome(
            success=result.returncode == 0,
            stderr=result.stderr or b"",
            command=command,
            returncode=result.returncode,
        )
        return self._record(outcome, notify=not read_only)

    def _record(self, outcome: ExecutionOutcome, *, notify: bool = True) -> ExecutionOutcome:
        self.history.append(outcome)
        if notify and self.observer is not None:
            self.observer(outcome)
        return outcome


__all__ = ["CommandRunner", "ExecutionOutcome", "Observer", "SubprocessRunner"]
