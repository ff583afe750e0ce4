"""OpenSSH daemon provider for starting and stopping the SFTP service."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from ..errors import CommandFailedError
from .executor import CommandRunner, ExecutionOutcome


class ServiceCommand(str, Enum):
    """Service lifecycle commands understood by :class:`SshdProvider`."""

    START = "start"
    STOP = "stop"
    RESTART = "restart"
    STATUS = "status"


@dataclass(slots=True)
class SshdProvider:
    """Launch and signal the ``sshd`` process serving SFTP accounts."""

    runner: CommandRunner
    sshd_bin: str = "sshd"
    start_args: Sequence[str] = ("-D", "-e")
    killall_bin: str = "killall"
    pgrep_bin: str = "pgrep"
    process_name: str = "sshd"
    tolerate_stopped_on_restart: bool = False

    def start(self) -> ExecutionOutcome:
        """Launch ``sshd`` in the foreground.

        A zero exit only means the launch invocation did not fail; it says
        nothing about the daemon having finished initialising.
        """
        return self._checked(self.sshd_bin, list(self.start_args), step="start")

    def stop(self) -> ExecutionOutcome:
        """Signal every process named :attr:`process_name`."""
        return self._checked(self.killall_bin, [self.process_name], step="stop")

    def restart(self) -> ExecutionOutcome:
        """Stop then start the daemon.

        A failed stop aborts the restart unless ``tolerate_stopped_on_restart``
        is set and the process table shows no running daemon.
        """
        if self.tolerate_stopped_on_restart and not self.is_running():
            return self.start()
        self.stop()
        return self.start()

    def is_running(self) -> bool:
        """Return ``True`` when the process table has a matching daemon."""
        outcome = self.runner.run(self.pgrep_bin, ["-x", self.process_name], read_only=True)
        return outcome.success

    def run(self, command: ServiceCommand) -> ExecutionOutcome | bool:
        """Dispatch *command* to the matching lifecycle method."""
        if command is ServiceCommand.START:
            return self.start()
        if command is ServiceCommand.STOP:
            return self.stop()
        if command is ServiceCommand.RESTART:
            return self.restart()
        return self.is_running()

    # ------------------------------------------------------------------
    def _checked(self, program: str, args: list[str], *, step: str) -> ExecutionOutcome:
        outcome = self.runner.run(program, args)
        if not outcome.success:
            raise CommandFailedError(
                outcome.stderr,
                command=outcome.command or (program, *args),
                returncode=outcome.returncode,
                step=step,
            )
        return outcome


__all__ = ["ServiceCommand", "SshdProvider"]
