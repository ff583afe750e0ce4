"""Batch provisioning: create every account in a directive file, then start sshd."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from .accounts import AccountDirective, AccountIdentity, AccountManager, load_directives
from .errors import NotFoundError
from .providers import SshdProvider


@dataclass(slots=True)
class ProvisioningReport:
    """Accounts created by a batch run and whether the daemon was launched."""

    created: list[AccountIdentity] = field(default_factory=list)
    service_started: bool = False


def provision_from_file(
    path: str | Path,
    *,
    accounts: AccountManager,
    service: SshdProvider,
    on_directive: Callable[[AccountDirective], None] | None = None,
    on_created: Callable[[AccountIdentity], None] | None = None,
) -> ProvisioningReport:
    """Create the accounts listed in *path* in file order, then start the daemon.

    The first failing directive aborts the batch: later lines are not read,
    accounts already created are kept, and the daemon is not started.
    """
    users_path = Path(path)
    if not users_path.exists():
        raise NotFoundError(f"Path {str(users_path)!r} does not exist")

    report = ProvisioningReport()
    for directive in load_directives(users_path):
        if on_directive is not None:
            on_directive(directive)
        identity = accounts.create(
            directive.name,
            directive.uid,
            directive.gid,
            directive.password,
        )
        report.created.append(identity)
        if on_created is not None:
            on_created(identity)

    service.start()
    report.service_started = True
    return report


__all__ = ["ProvisioningReport", "provision_from_file"]
