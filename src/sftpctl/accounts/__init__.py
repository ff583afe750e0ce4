"""Account provisioning: lookups, directive parsing, and lifecycle operations."""
from __future__ import annotations

from .directives import load_directives, parse_directive
from .lookup import AccountLookup, PasswdLookup, StaticAccountLookup, validate_account_name
from .models import (
    AccountDirective,
    AccountIdentity,
    AccountMutationRequest,
    AccountUpdate,
    CreateAccount,
    DeleteAccount,
    ModifyAccount,
    ModifyResult,
)
from .operations import AccountManager

__all__ = [
    # models
    "AccountDirective",
    "AccountIdentity",
    "AccountMutationRequest",
    "AccountUpdate",
    "CreateAccount",
    "DeleteAccount",
    "ModifyAccount",
    "ModifyResult",
    # lookups
    "AccountLookup",
    "PasswdLookup",
    "StaticAccountLookup",
    "validate_account_name",
    # operations
    "AccountManager",
    # directives
    "load_directives",
    "parse_directive",
]
