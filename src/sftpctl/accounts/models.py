"""Value objects describing accounts and requested account changes."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class AccountIdentity:
    """The (name, uid, gid) triple identifying a host account."""

    name: str
    uid: int
    gid: int

    def describe(self) -> str:
        """Return the human-readable form used in CLI messages."""
        return f"{self.name} (uid: {self.uid} gid: {self.gid})"


@dataclass(slots=True, frozen=True)
class AccountDirective:
    """One parsed line of a batch directive file."""

    name: str
    password: str
    uid: int
    gid: int

    @property
    def identity(self) -> AccountIdentity:
        """Return the identity this directive will create."""
        return AccountIdentity(self.name, self.uid, self.gid)


@dataclass(slots=True, frozen=True)
class AccountUpdate:
    """Replacement identity values; ``None`` leaves the attribute unchanged."""

    name: str | None = None
    uid: int | None = None
    gid: int | None = None

    def is_empty(self) -> bool:
        """Return ``True`` when no attribute is being replaced."""
        return self.name is None and self.uid is None and self.gid is None

    def merge(self, identity: AccountIdentity) -> AccountIdentity:
        """Return *identity* with the supplied replacements applied."""
        return AccountIdentity(
            name=self.name if self.name is not None else identity.name,
            uid=self.uid if self.uid is not None else identity.uid,
            gid=self.gid if self.gid is not None else identity.gid,
        )


@dataclass(slots=True, frozen=True)
class CreateAccount:
    """Request to create an account with a pre-encrypted password."""

    name: str
    uid: int
    gid: int
    password: str


@dataclass(slots=True, frozen=True)
class DeleteAccount:
    """Request to delete an account and its home directory."""

    name: str
    uid: int
    gid: int


@dataclass(slots=True, frozen=True)
class ModifyAccount:
    """Request to change an account's identity and/or password."""

    old: AccountIdentity
    new: AccountUpdate = AccountUpdate()
    new_password: str | None = None


AccountMutationRequest = CreateAccount | DeleteAccount | ModifyAccount


@dataclass(slots=True, frozen=True)
class ModifyResult:
    """Outcome of a successful modify operation."""

    identity: AccountIdentity
    password_changed: bool


__all__ = [
    "AccountDirective",
    "AccountIdentity",
    "AccountMutationRequest",
    "AccountUpdate",
    "CreateAccount",
    "DeleteAccount",
    "ModifyAccount",
    "ModifyResult",
]
