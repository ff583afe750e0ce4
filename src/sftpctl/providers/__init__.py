"""Provider interfaces for sftpctl."""
from __future__ import annotations

from .executor import CommandRunner, ExecutionOutcome, Observer, SubprocessRunner
from .sshd import ServiceCommand, SshdProvider

__all__ = [
    "CommandRunner",
    "ExecutionOutcome",
    "Observer",
    "ServiceCommand",
    "SshdProvider",
    "SubprocessRunner",
]
