"""Create, delete, and modify SFTP accounts through the shadow-utils tools."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..errors import AlreadyExistsError, CommandFailedError, NotFoundError
from ..providers.executor import CommandRunner, ExecutionOutcome
from .lookup import AccountLookup, validate_account_name
from .models import (
    AccountIdentity,
    AccountMutationRequest,
    AccountUpdate,
    CreateAccount,
    DeleteAccount,
    ModifyAccount,
    ModifyResult,
)


@dataclass(slots=True)
class AccountManager:
    """Apply account mutations after checking the account database.

    Existence is checked before any tool runs so that the common failure
    cases surface as typed errors instead of tool-specific exit codes.
    """

    lookup: AccountLookup
    runner: CommandRunner
    home_root: Path = Path("/home")
    useradd_bin: str = "useradd"
    userdel_bin: str = "userdel"
    usermod_bin: str = "usermod"
    chpasswd_bin: str = "chpasswd"

    def home_for(self, name: str) -> Path:
        """Return the home directory assigned to *name*."""
        return self.home_root / name

    def create(self, name: str, uid: int, gid: int, password: str) -> AccountIdentity:
        """Create *name* with a home directory and a pre-encrypted password."""
        validate_account_name(name)
        if self.lookup.exists(name):
            raise AlreadyExistsError(f"User {name} already exists")

        args = [
            "-m",
            "-u",
            str(uid),
            "-g",
            str(gid),
            "-d",
            str(self.home_for(name)),
            "-p",
            password,
            name,
        ]
        self._check(self.runner.run(self.useradd_bin, args), step="create")
        return AccountIdentity(name, uid, gid)

    def delete(self, name: str, uid: int, gid: int) -> AccountIdentity:
        """Delete *name* together with its home directory."""
        validate_account_name(name)
        if not self.lookup.exists(name):
            raise NotFoundError(f"User {name} doesn't exist")

        self._check(self.runner.run(self.userdel_bin, ["-r", name]), step="delete")
        return AccountIdentity(name, uid, gid)

    def modify(
        self,
        old: AccountIdentity,
        update: AccountUpdate | None = None,
        new_password: str | None = None,
    ) -> ModifyResult:
        """Change identity attributes of *old*, then optionally its password.

        ``usermod`` receives only the flags for attributes present in *update*.
        The password is set by a second, separate ``chpasswd`` call that runs
        only after ``usermod`` succeeded; if it fails the identity change stays
        committed and the raised error has ``identity_committed`` set.
        """
        update = update or AccountUpdate()
        validate_account_name(old.name)
        if update.name is not None:
            validate_account_name(update.name)
        if not self.lookup.exists(old.name):
            raise NotFoundError(f"User {old.name} doesn't exist")

        args: list[str] = []
        if update.name is not None:
            args.extend(["-l", update.name])
        if update.uid is not None:
            args.extend(["-u", str(update.uid)])
        if update.gid is not None:
            args.extend(["-g", str(update.gid)])
        args.append(old.name)
        self._check(self.runner.run(self.usermod_bin, args), step="identity")

        identity = update.merge(old)
        if new_password is None:
            return ModifyResult(identity=identity, password_changed=False)

        payload = f"{identity.name}:{new_password}\n".encode()
        self._check(
            self.runner.run(self.chpasswd_bin, ["-e"], stdin=payload),
            step="password",
            identity_committed=True,
        )
        return ModifyResult(identity=identity, password_changed=True)

    def apply(self, request: AccountMutationRequest) -> AccountIdentity | ModifyResult:
        """Dispatch *request* to the matching operation."""
        if isinstance(request, CreateAccount):
            return self.create(request.name, request.uid, request.gid, request.password)
        if isinstance(request, DeleteAccount):
            return self.delete(request.name, request.uid, request.gid)
        if isinstance(request, ModifyAccount):
            return self.modify(request.old, request.new, request.new_password)
        raise TypeError(f"Unsupported account request: {request!r}")

    # ------------------------------------------------------------------
    @staticmethod
    def _check(
        outcome: ExecutionOutcome,
        *,
        step: str,
        identity_committed: bool = False,
    ) -> None:
        if outcome.success:
            return
        raise CommandFailedError(
            outcome.stderr,
            command=outcome.command,
            returncode=outcome.returncode,
            step=step,
            identity_committed=identity_committed,
        )


__all__ = ["AccountManager"]
