"""Read-only queries against the host account database."""
from __future__ import annotations

import pwd
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from ..errors import InvalidInputError


class AccountLookup(Protocol):
    """Capability answering whether a named account exists."""

    def exists(self, name: str) -> bool:
        """Return ``True`` when *name* is present in the account database."""
        ...


def validate_account_name(name: str) -> str:
    """Return *name* unchanged or raise :class:`InvalidInputError`."""
    if not name:
        raise InvalidInputError("Account name must not be empty.")
    if "\x00" in name:
        raise InvalidInputError(f"Account name {name!r} contains a NUL byte.")
    if name.startswith("-"):
        raise InvalidInputError(f"Account name {name!r} must not start with '-'.")
    return name


class PasswdLookup:
    """Look accounts up through the system passwd database."""

    def exists(self, name: str) -> bool:
        validate_account_name(name)
        try:
            pwd.getpwnam(name)
        except KeyError:
            return False
        except ValueError as exc:
            raise InvalidInputError(f"Invalid account name {name!r}: {exc}") from exc
        return True


@dataclass(slots=True)
class StaticAccountLookup:
    """In-memory lookup over a fixed set of names (used by tests)."""

    names: set[str] = field(default_factory=set)

    @classmethod
    def of(cls, names: Iterable[str]) -> StaticAccountLookup:
        """Build a lookup containing *names*."""
        return cls(set(names))

    def exists(self, name: str) -> bool:
        validate_account_name(name)
        return name in self.names


__all__ = [
    "AccountLookup",
    "PasswdLookup",
    "StaticAccountLookup",
    "validate_account_name",
]
