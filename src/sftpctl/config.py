"""Configuration loader for sftpctl.

Values are resolved from, in increasing precedence:

1. Built-in defaults.
2. ``/etc/sftpctl/config.yml`` (or the ``--config-file`` override).
3. Environment variables prefixed with ``SFTPCTL_``.
4. Explicit overrides supplied programmatically (reserved for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export SFTPCTL_HOME_ROOT=/srv/sftp
    export SFTPCTL_SSHD__TOLERATE_STOPPED_ON_RESTART=true

Values are coerced via PyYAML's ``safe_load`` so that booleans, numbers, and
flow lists (``SFTPCTL_SSHD__START_ARGS='[-D, -e]'``) parse naturally.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import cast

import yaml

ENV_PREFIX = "SFTPCTL_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class AccountToolsConfig:
    """Executables used to manage accounts."""

    useradd_bin: str = "useradd"
    userdel_bin: str = "userdel"
    usermod_bin: str = "usermod"
    chpasswd_bin: str = "chpasswd"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "useradd_bin": self.useradd_bin,
            "userdel_bin": self.userdel_bin,
            "usermod_bin": self.usermod_bin,
            "chpasswd_bin": self.chpasswd_bin,
        }


@dataclass(frozen=True)
class SshdConfig:
    """How the SFTP daemon is launched and signalled."""

    sshd_bin: str = "sshd"
    start_args: tuple[str, ...] = ("-D", "-e")
    killall_bin: str = "killall"
    pgrep_bin: str = "pgrep"
    process_name: str = "sshd"
    tolerate_stopped_on_restart: bool = False

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "sshd_bin": self.sshd_bin,
            "start_args": list(self.start_args),
            "killall_bin": self.killall_bin,
            "pgrep_bin": self.pgrep_bin,
            "process_name": self.process_name,
            "tolerate_stopped_on_restart": self.tolerate_stopped_on_restart,
        }


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for sftpctl."""

    config_file: Path
    logs_dir: Path
    home_root: Path
    accounts: AccountToolsConfig
    sshd: SshdConfig

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "logs_dir": str(self.logs_dir),
            "home_root": str(self.home_root),
            "accounts": self.accounts.to_dict(),
            "sshd": self.sshd.to_dict(),
        }


DEFAULTS: dict[str, object] = {
    "config_file": "/etc/sftpctl/config.yml",
    "logs_dir": "/var/log/sftpctl",
    "home_root": "/home",
    "accounts": AccountToolsConfig().to_dict(),
    "sshd": SshdConfig().to_dict(),
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
ALLOWED_ACCOUNT_KEYS = set(AccountToolsConfig().to_dict().keys())
ALLOWED_SSHD_KEYS = set(SshdConfig().to_dict().keys())


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_path = _determine_config_path(str(merged["config_file"]), config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override)
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR])
    return Path(default_path)


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    _reject_unknown(raw, ALLOWED_TOP_LEVEL_KEYS, "configuration")
    _reject_unknown(_as_dict(raw.get("accounts"), "accounts"), ALLOWED_ACCOUNT_KEYS, "accounts")
    _reject_unknown(_as_dict(raw.get("sshd"), "sshd"), ALLOWED_SSHD_KEYS, "sshd")


def _reject_unknown(mapping: Mapping[str, object], allowed: set[str], label: str) -> None:
    unknown = set(mapping.keys()) - allowed
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown {label} keys: {joined}.")


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    accounts_mapping = _as_dict(raw.get("accounts"), "accounts")
    account_defaults = AccountToolsConfig()
    accounts = AccountToolsConfig(
        useradd_bin=_expect_bin(accounts_mapping, "useradd_bin", account_defaults.useradd_bin),
        userdel_bin=_expect_bin(accounts_mapping, "userdel_bin", account_defaults.userdel_bin),
        usermod_bin=_expect_bin(accounts_mapping, "usermod_bin", account_defaults.usermod_bin),
        chpasswd_bin=_expect_bin(accounts_mapping, "chpasswd_bin", account_defaults.chpasswd_bin),
    )

    sshd_mapping = _as_dict(raw.get("sshd"), "sshd")
    sshd_defaults = SshdConfig()
    sshd = SshdConfig(
        sshd_bin=_expect_bin(sshd_mapping, "sshd_bin", sshd_defaults.sshd_bin),
        start_args=_expect_str_tuple(
            sshd_mapping.get("start_args"),
            "sshd.start_args",
            default=sshd_defaults.start_args,
        ),
        killall_bin=_expect_bin(sshd_mapping, "killall_bin", sshd_defaults.killall_bin),
        pgrep_bin=_expect_bin(sshd_mapping, "pgrep_bin", sshd_defaults.pgrep_bin),
        process_name=_expect_bin(sshd_mapping, "process_name", sshd_defaults.process_name),
        tolerate_stopped_on_restart=_expect_bool(
            sshd_mapping.get("tolerate_stopped_on_restart"),
            "sshd.tolerate_stopped_on_restart",
            default=sshd_defaults.tolerate_stopped_on_restart,
        ),
    )

    return AppConfig(
        config_file=_to_path(raw.get("config_file")),
        logs_dir=_to_path(raw.get("logs_dir")),
        home_root=_to_path(raw.get("home_root")),
        accounts=accounts,
        sshd=sshd,
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS or not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            child: MutableMapping[str, object] = {}
            current[segment] = child
            current = child
        elif isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
        else:
            raise ConfigError(
                f"Environment overrides conflict with existing scalar value at {'.'.join(path)}"
            )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        elif isinstance(value, list):
            result[key] = list(value)
        else:
            result[key] = value
    return result


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw


def _to_path(value: object) -> Path:
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str) and value.strip():
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_bin(mapping: Mapping[str, object], key: str, default: str) -> str:
    value = mapping.get(key)
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"Expected {key} to be a non-empty string. Got {value!r}.")
    return value.strip()


def _expect_bool(value: object | None, label: str, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise ConfigError(f"Expected {label} to be a boolean. Got {value!r}.")


def _expect_str_tuple(
    value: object | None,
    label: str,
    *,
    default: tuple[str, ...],
) -> tuple[str, ...]:
    if value is None:
        return default
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ConfigError(f"Expected {label} to be a list of strings. Got {value!r}.")
    items: list[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str):
            raise ConfigError(f"Expected {label}[{index}] to be a string. Got {item!r}.")
        items.append(item)
    return tuple(items)


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AccountToolsConfig",
    "AppConfig",
    "ConfigError",
    "SshdConfig",
    "load_config",
]
