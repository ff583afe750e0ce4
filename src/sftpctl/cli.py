"""Typer-powered command line for ``sftpctl``.

Commands map one-to-one onto the account and service operations. Every
command runs inside a structured log operation, prints a short human message
on success, and exits with the code carried by the raised
:class:`~sftpctl.errors.SftpctlError` on failure.
"""
from __future__ import annotations

import shlex
import textwrap
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .accounts import (
    AccountDirective,
    AccountIdentity,
    AccountManager,
    AccountUpdate,
    PasswdLookup,
)
from .accounts.directives import MAX_ID
from .config import AppConfig, ConfigError, load_config
from .errors import CommandFailedError, SftpctlError
from .exit_codes import ExitCode
from .logging import OperationScope, StructuredLogger
from .provisioning import provision_from_file
from .providers import ExecutionOutcome, SshdProvider, SubprocessRunner

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)

REDACTED = "***"

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to sftpctl's YAML config file.",
)

DRY_RUN_OPTION = typer.Option(
    False,
    "--dry-run",
    help="Print the commands that would run without executing them.",
)

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        Provision SFTP accounts and control the OpenSSH daemon serving them.

        Run ``entry`` with a directive file to create many accounts and start
        sshd, or manage single accounts and the service directly.
        """
    ).strip(),
)


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by commands."""

    config: AppConfig
    logger: StructuredLogger
    runner: SubprocessRunner
    accounts: AccountManager
    sshd: SshdProvider
    dry_run: bool = False


def _ensure_runtime(
    ctx: typer.Context,
    config_file: Path | None,
    dry_run: bool = False,
) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime

    try:
        config = load_config(config_file=config_file)
    except ConfigError as exc:
        err_console.print(str(exc), style="red", markup=False, highlight=False)
        raise typer.Exit(code=int(ExitCode.VALIDATION)) from exc

    runner = SubprocessRunner(dry_run=dry_run)
    if dry_run:
        runner.observer = _print_dry_run_command
    tools = config.accounts
    accounts = AccountManager(
        lookup=PasswdLookup(),
        runner=runner,
        home_root=config.home_root,
        useradd_bin=tools.useradd_bin,
        userdel_bin=tools.userdel_bin,
        usermod_bin=tools.usermod_bin,
        chpasswd_bin=tools.chpasswd_bin,
    )
    sshd_config = config.sshd
    sshd = SshdProvider(
        runner=runner,
        sshd_bin=sshd_config.sshd_bin,
        start_args=sshd_config.start_args,
        killall_bin=sshd_config.killall_bin,
        pgrep_bin=sshd_config.pgrep_bin,
        process_name=sshd_config.process_name,
        tolerate_stopped_on_restart=sshd_config.tolerate_stopped_on_restart,
    )
    runtime = RuntimeContext(
        config=config,
        logger=StructuredLogger(config.logs_dir),
        runner=runner,
        accounts=accounts,
        sshd=sshd,
        dry_run=dry_run,
    )
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    return _ensure_runtime(ctx, None)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the sftpctl version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        console.print(f"sftpctl {__version__}")
        raise typer.Exit(code=0)

    _ensure_runtime(ctx, config_file, dry_run)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


# ----------------------------------------------------------------------
# helpers


def _redact(command: Sequence[str]) -> list[str]:
    """Return *command* with the useradd password hash (``-p VALUE``) masked."""
    if not command or "useradd" not in Path(command[0]).name:
        return list(command)
    redacted: list[str] = []
    mask_next = False
    for part in command:
        redacted.append(REDACTED if mask_next else part)
        mask_next = part == "-p"
    return redacted


def _print_dry_run_command(outcome: ExecutionOutcome) -> None:
    console.print(
        f"[yellow]Dry run[/yellow]: {escape(shlex.join(_redact(outcome.command)))}",
        highlight=False,
    )


def _record_commands(op: OperationScope, outcomes: Sequence[ExecutionOutcome]) -> None:
    for outcome in outcomes:
        program = Path(outcome.command[0]).name if outcome.command else "command"
        detail: dict[str, object] = {
            "command": _redact(outcome.command),
            "rc": outcome.returncode,
        }
        if outcome.stderr:
            detail["stderr"] = outcome.stderr.decode("utf-8", errors="replace").strip()
        op.add_step(program, status="success" if outcome.success else "failed", detail=detail)


def _command_error(
    op: OperationScope,
    exc: SftpctlError,
    *,
    context: Mapping[str, object] | None = None,
) -> NoReturn:
    """Emit a structured error and terminate the command."""
    message = str(exc).rstrip("\n")
    rc = int(exc.exit_code)
    err_console.print(message, style="red", markup=False, highlight=False)
    op.error(message, rc=rc, context=context)
    raise typer.Exit(code=rc)


@contextmanager
def _guarded(
    runtime: RuntimeContext,
    name: str,
    *,
    args: Mapping[str, object],
    target: Mapping[str, object],
) -> Iterator[OperationScope]:
    """Run a command body inside a logged operation, mapping errors to exits."""
    first = len(runtime.runner.history)
    with runtime.logger.operation(name, args=args, target=target) as op:
        try:
            yield op
        except SftpctlError as exc:
            _record_commands(op, runtime.runner.history[first:])
            context: dict[str, object] = {"error": type(exc).__name__}
            if isinstance(exc, CommandFailedError):
                context.update(step=exc.step, identity_committed=exc.identity_committed)
                if exc.identity_committed:
                    err_console.print(
                        "Account identity change was applied; only the password update "
                        "failed. Retry with --user-new-pass alone.",
                        style="yellow",
                        markup=False,
                        highlight=False,
                    )
            _command_error(op, exc, context=context)
        else:
            _record_commands(op, runtime.runner.history[first:])


def _announce(runtime: RuntimeContext, message: str) -> None:
    if runtime.dry_run:
        return
    console.print(message, markup=False, highlight=False)


def _finish(runtime: RuntimeContext, op: OperationScope, message: str, *, changed: int) -> None:
    if runtime.dry_run:
        console.print("[yellow]Dry run[/yellow]: no changes were made.")
        op.success("Dry run complete.", changed=0)
        return
    op.success(message, changed=changed)


# ----------------------------------------------------------------------
# account commands


@app.command("entry")
def entry(
    ctx: typer.Context,
    users_file: Path = typer.Option(
        ...,
        "--users-file",
        "-u",
        help="Directive file with one name:password:uid:gid entry per line.",
    ),
) -> None:
    """Create every account in USERS_FILE, then start the OpenSSH server."""
    runtime = _get_runtime(ctx)

    def show_directive(directive: AccountDirective) -> None:
        console.print(f"Processing user: {directive.name}", markup=False, highlight=False)
        console.print(f"  UID: {directive.uid}", highlight=False)
        console.print(f"  GID: {directive.gid}", highlight=False)

    def show_created(identity: AccountIdentity) -> None:
        _announce(runtime, f"User {identity.describe()} created successfully!")

    with _guarded(
        runtime,
        "entry",
        args={"users_file": users_file},
        target={"kind": "batch", "path": users_file},
    ) as op:
        report = provision_from_file(
            users_file,
            accounts=runtime.accounts,
            service=runtime.sshd,
            on_directive=show_directive,
            on_created=show_created,
        )
        _announce(runtime, "OpenSSH server started successfully.")
        _finish(
            runtime,
            op,
            f"Provisioned {len(report.created)} account(s) and started sshd.",
            changed=len(report.created) + 1,
        )


@app.command("create-user")
def create_user(
    ctx: typer.Context,
    user_name: str = typer.Option(..., "--user-name", "-n", help="Account name."),
    user_id: int = typer.Option(..., "--user-id", "-u", min=0, max=MAX_ID, help="Numeric uid."),
    user_group_id: int = typer.Option(
        ..., "--user-group-id", "-g", min=0, max=MAX_ID, help="Numeric primary gid."
    ),
    user_pass: str = typer.Option(
        ..., "--user-pass", "-p", help="Pre-encrypted password hash (crypt(3) format)."
    ),
) -> None:
    """Create an SFTP account with a home directory under the home root."""
    runtime = _get_runtime(ctx)
    with _guarded(
        runtime,
        "create-user",
        args={"name": user_name, "uid": user_id, "gid": user_group_id, "password": REDACTED},
        target={"kind": "account", "name": user_name},
    ) as op:
        identity = runtime.accounts.create(user_name, user_id, user_group_id, user_pass)
        _announce(runtime, f"User {identity.describe()} created successfully!")
        _finish(runtime, op, "Account created.", changed=1)


@app.command("delete-user")
def delete_user(
    ctx: typer.Context,
    user_name: str = typer.Option(..., "--user-name", "-n", help="Account name."),
    user_id: int = typer.Option(..., "--user-id", "-u", min=0, max=MAX_ID, help="Numeric uid."),
    user_group_id: int = typer.Option(
        ..., "--user-group-id", "-g", min=0, max=MAX_ID, help="Numeric primary gid."
    ),
) -> None:
    """Delete an SFTP account and its home directory."""
    runtime = _get_runtime(ctx)
    with _guarded(
        runtime,
        "delete-user",
        args={"name": user_name, "uid": user_id, "gid": user_group_id},
        target={"kind": "account", "name": user_name},
    ) as op:
        identity = runtime.accounts.delete(user_name, user_id, user_group_id)
        _announce(runtime, f"User {identity.describe()} deleted successfully!")
        _finish(runtime, op, "Account deleted.", changed=1)


@app.command("modify-user")
def modify_user(
    ctx: typer.Context,
    user_old_name: str = typer.Option(..., "--user-old-name", "-n", help="Current name."),
    user_old_id: int = typer.Option(
        ..., "--user-old-id", "-u", min=0, max=MAX_ID, help="Current uid."
    ),
    user_old_group_id: int = typer.Option(
        ..., "--user-old-group-id", "-g", min=0, max=MAX_ID, help="Current gid."
    ),
    user_new_name: str | None = typer.Option(None, "--user-new-name", "-N", help="New name."),
    user_new_id: int | None = typer.Option(
        None, "--user-new-id", "-U", min=0, max=MAX_ID, help="New uid."
    ),
    user_new_group_id: int | None = typer.Option(
        None, "--user-new-group-id", "-G", min=0, max=MAX_ID, help="New primary gid."
    ),
    user_new_pass: str | None = typer.Option(
        None, "--user-new-pass", "-P", help="New pre-encrypted password hash."
    ),
) -> None:
    """Rename an account, change its uid/gid, and/or replace its password."""
    runtime = _get_runtime(ctx)
    old = AccountIdentity(user_old_name, user_old_id, user_old_group_id)
    update = AccountUpdate(name=user_new_name, uid=user_new_id, gid=user_new_group_id)
    with _guarded(
        runtime,
        "modify-user",
        args={
            "old": {"name": old.name, "uid": old.uid, "gid": old.gid},
            "new": {"name": update.name, "uid": update.uid, "gid": update.gid},
            "password": REDACTED if user_new_pass is not None else None,
        },
        target={"kind": "account", "name": user_old_name},
    ) as op:
        result = runtime.accounts.modify(old, update, user_new_pass)
        _announce(runtime, f"User {result.identity.describe()} modified successfully!")
        if result.password_changed:
            _announce(
                runtime,
                f"Password for user {result.identity.describe()} changed successfully!",
            )
        _finish(
            runtime,
            op,
            "Account modified.",
            changed=2 if result.password_changed else 1,
        )


# ----------------------------------------------------------------------
# service commands


@app.command("start")
def start(ctx: typer.Context) -> None:
    """Start the OpenSSH server in the foreground."""
    runtime = _get_runtime(ctx)
    with _guarded(runtime, "start", args={}, target={"kind": "service", "name": "sshd"}) as op:
        runtime.sshd.start()
        _announce(runtime, "OpenSSH server started successfully.")
        _finish(runtime, op, "Service started.", changed=1)


@app.command("stop")
def stop(ctx: typer.Context) -> None:
    """Stop every running OpenSSH server process."""
    runtime = _get_runtime(ctx)
    with _guarded(runtime, "stop", args={}, target={"kind": "service", "name": "sshd"}) as op:
        runtime.sshd.stop()
        _announce(runtime, "OpenSSH server stopped successfully.")
        _finish(runtime, op, "Service stopped.", changed=1)


@app.command("restart")
def restart(ctx: typer.Context) -> None:
    """Stop then start the OpenSSH server."""
    runtime = _get_runtime(ctx)
    with _guarded(runtime, "restart", args={}, target={"kind": "service", "name": "sshd"}) as op:
        runtime.sshd.restart()
        _announce(runtime, "OpenSSH server restarted successfully.")
        _finish(runtime, op, "Service restarted.", changed=2)


@app.command("status")
def status(ctx: typer.Context) -> None:
    """Report whether an OpenSSH server process is running."""
    runtime = _get_runtime(ctx)
    with _guarded(runtime, "status", args={}, target={"kind": "service", "name": "sshd"}) as op:
        running = runtime.sshd.is_running()
        state = "running" if running else "not running"
        console.print(f"OpenSSH server is {state}.", highlight=False)
        op.success(f"Service is {state}.", changed=0, context={"running": running})


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
