"""Tests for batch provisioning from a directive file."""
from __future__ import annotations

from pathlib import Path

import pytest

from sftpctl.accounts import AccountDirective, AccountIdentity, AccountManager, StaticAccountLookup
from sftpctl.errors import AlreadyExistsError, CommandFailedError, InvalidInputError, NotFoundError
from sftpctl.providers import SshdProvider
from sftpctl.provisioning import provision_from_file
from tests.conftest import FakeRunner


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "users.txt"
    path.write_text(text, encoding="utf-8")
    return path


def test_batch_creates_accounts_in_order_then_starts(
    tmp_path: Path,
    manager: AccountManager,
    sshd: SshdProvider,
    runner: FakeRunner,
) -> None:
    """Every directive is created in file order before sshd starts."""
    users = _write(tmp_path, "alice:a:1001:1001\nbob:b:1002:1002\n")
    seen: list[AccountDirective] = []
    created: list[AccountIdentity] = []

    report = provision_from_file(
        users,
        accounts=manager,
        service=sshd,
        on_directive=seen.append,
        on_created=created.append,
    )

    assert runner.programs == ["useradd", "useradd", "sshd"]
    assert [call.args[-1] for call in runner.calls[:2]] == ["alice", "bob"]
    assert [d.name for d in seen] == ["alice", "bob"]
    assert created == report.created
    assert report.created == [
        AccountIdentity("alice", 1001, 1001),
        AccountIdentity("bob", 1002, 1002),
    ]
    assert report.service_started is True


def test_blank_file_still_starts_service_once(
    tmp_path: Path,
    manager: AccountManager,
    sshd: SshdProvider,
    runner: FakeRunner,
) -> None:
    """With no directives the daemon is still started exactly once."""
    users = _write(tmp_path, "\n   \n\n")

    report = provision_from_file(users, accounts=manager, service=sshd)

    assert report.created == []
    assert runner.programs == ["sshd"]


def test_existing_account_aborts_remaining_batch(
    tmp_path: Path,
    manager: AccountManager,
    lookup: StaticAccountLookup,
    sshd: SshdProvider,
    runner: FakeRunner,
) -> None:
    """The first failure stops the batch and the service is never started."""
    users = _write(tmp_path, "alice:a:1001:1001\nbob:b:1002:1002\ncarol:c:1003:1003\n")
    lookup.names.add("bob")
    seen: list[str] = []

    with pytest.raises(AlreadyExistsError, match="User bob already exists"):
        provision_from_file(
            users,
            accounts=manager,
            service=sshd,
            on_directive=lambda directive: seen.append(directive.name),
        )

    assert runner.programs == ["useradd"]
    assert runner.calls[0].args[-1] == "alice"
    assert seen == ["alice", "bob"]


def test_malformed_line_aborts_before_mutation(
    tmp_path: Path,
    manager: AccountManager,
    sshd: SshdProvider,
    runner: FakeRunner,
) -> None:
    """A directive without uid/gid is rejected, never created with placeholders."""
    users = _write(tmp_path, "alice:a:1001:1001\nbob:b\ncarol:c:1003:1003\n")

    with pytest.raises(InvalidInputError, match=":2:"):
        provision_from_file(users, accounts=manager, service=sshd)

    assert runner.programs == ["useradd"]


def test_tool_failure_propagates_verbatim(
    tmp_path: Path,
    manager: AccountManager,
    sshd: SshdProvider,
    runner: FakeRunner,
) -> None:
    """A failing useradd surfaces its stderr and skips the service start."""
    users = _write(tmp_path, "alice:a:1001:1001\n")
    runner.fail("useradd", b"useradd: group '1001' does not exist\n")

    with pytest.raises(CommandFailedError, match="group '1001' does not exist"):
        provision_from_file(users, accounts=manager, service=sshd)

    assert "sshd" not in runner.programs


def test_missing_file_is_not_found(
    tmp_path: Path,
    manager: AccountManager,
    sshd: SshdProvider,
    runner: FakeRunner,
) -> None:
    """A missing directive file fails before any command runs."""
    with pytest.raises(NotFoundError):
        provision_from_file(tmp_path / "missing.txt", accounts=manager, service=sshd)

    assert runner.calls == []


def test_service_start_failure_keeps_created_accounts(
    tmp_path: Path,
    manager: AccountManager,
    sshd: SshdProvider,
    runner: FakeRunner,
) -> None:
    """A failed start propagates; created accounts are not rolled back."""
    users = _write(tmp_path, "alice:a:1001:1001\n")
    runner.fail("sshd", b"sshd: no hostkeys available -- exiting.\n")

    with pytest.raises(CommandFailedError, match="no hostkeys"):
        provision_from_file(users, accounts=manager, service=sshd)

    assert runner.programs == ["useradd", "sshd"]
    assert "userdel" not in runner.programs
