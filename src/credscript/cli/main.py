"""credscript CLI — run credential lifecycle scripts from the command line.

Commands:
    type        Print the engine type
    render      Render statements against the root parameters (no execution)
    create      Generate a username and run creation statements
    update      Run password change statements for a username
    delete      Run deletion statements for a username

Statements are positional arguments; ``-`` reads them from stdin, one
script fragment per line.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

import click

from credscript import __version__
from credscript.config import EngineConfig, build_engine, load_config
from credscript.errors import CredScriptError
from credscript.models import (
    ChangePassword,
    DeleteUserRequest,
    NewUserRequest,
    Statements,
    UpdateUserRequest,
    UsernameMetadata,
)
from credscript.redaction import RedactingFilter, SecretRedactor
from credscript.runner.executor import DryRunExecutor

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _statements(args: tuple[str, ...]) -> list[str]:
    if args == ("-",):
        return [line for line in sys.stdin.read().splitlines() if line.strip()]
    return list(args)


class _ClickHandler(logging.Handler):
    """Writes log records to click's stderr stream at emit time."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def _setup_logging(verbose: bool, engine: SecretRedactor) -> None:
    handler = _ClickHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RedactingFilter(engine))
    pkg_logger = logging.getLogger("credscript")
    for old in [h for h in pkg_logger.handlers if isinstance(h, _ClickHandler)]:
        pkg_logger.removeHandler(old)
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _engine(ctx: click.Context, dry_run: bool = False) -> SecretRedactor:
    """Build and initialize the engine from the group's config."""
    cfg: EngineConfig = ctx.obj["config"]
    engine = build_engine(cfg, dry_run=dry_run)
    _setup_logging(ctx.obj["verbose"], engine)
    try:
        engine.initialize(cfg.root)
    except CredScriptError as e:
        click.echo(f"Error initializing engine: {e}", err=True)
        sys.exit(1)
    return engine


def _report_dry_run(engine: SecretRedactor, extra: list[str]) -> None:
    executor = engine.manager.executor
    if isinstance(executor, DryRunExecutor) and executor.last_script is not None:
        click.echo(click.style("[dry-run] ", fg="yellow") + "script:")
        click.echo(engine.redact(executor.last_script, extra))


def _emit(payload: dict[str, Any], json_output: bool) -> None:
    if json_output:
        click.echo(json.dumps(payload, indent=2))
    else:
        for key, value in payload.items():
            click.echo(f"  {key}: {value}")


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=None, help="Path to credscript.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Log engine activity to stderr")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """credscript: scripted credential lifecycle engine."""
    try:
        cfg = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)
    ctx.obj = {"config": cfg, "verbose": verbose}


@cli.command("type")
@click.pass_context
def engine_type(ctx: click.Context) -> None:
    """Print the engine type."""
    cfg: EngineConfig = ctx.obj["config"]
    click.echo(build_engine(cfg, dry_run=True).type())


@cli.command()
@click.argument("statements", nargs=-1, required=True)
@click.option("--username", default=None, help="Value for {{username}} and {{name}}")
@click.option("--name", default=None, help="Value for {{name}} (defaults to --username)")
@click.option("--password", default=None, help="Value for {{password}}")
@click.option("--show-secrets", is_flag=True, help="Do not redact passwords in the output")
@click.pass_context
def render(
    ctx: click.Context,
    statements: tuple[str, ...],
    username: str | None,
    name: str | None,
    password: str | None,
    show_secrets: bool,
) -> None:
    """Render statements against the root parameters without executing them."""
    engine = _engine(ctx, dry_run=True)
    per_call: dict[str, str] = {}
    if username is not None:
        per_call["username"] = username
        per_call["name"] = username
    if name is not None:
        per_call["name"] = name
    if password is not None:
        per_call["password"] = password

    script, _ = engine.manager.render_script(_statements(statements), per_call)
    if not show_secrets:
        script = engine.redact(script, [password or ""])
    click.echo(script)


@cli.command()
@click.argument("statements", nargs=-1, required=True)
@click.option("--display-name", "-d", default="", help="Display name for the username")
@click.option("--role-name", "-r", default="", help="Role name for the username")
@click.option("--password", prompt=True, hide_input=True, help="Password for the new credential")
@click.option("--dry-run", is_flag=True, help="Render the script but do not execute it")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def create(
    ctx: click.Context,
    statements: tuple[str, ...],
    display_name: str,
    role_name: str,
    password: str,
    dry_run: bool,
    json_output: bool,
) -> None:
    """Generate a username and run the creation statements."""
    engine = _engine(ctx, dry_run=dry_run)
    request = NewUserRequest(
        username_config=UsernameMetadata(display_name=display_name, role_name=role_name),
        password=password,
        statements=Statements(commands=_statements(statements)),
    )
    try:
        response = engine.create_credential(request)
    except CredScriptError as e:
        click.echo(click.style("ERROR", fg="red") + f"  {e}", err=True)
        sys.exit(1)
    finally:
        engine.close()

    if dry_run and not json_output:
        _report_dry_run(engine, [password])
    _emit({"username": response.username}, json_output)


@cli.command()
@click.argument("username")
@click.argument("statements", nargs=-1, required=True)
@click.option("--password", prompt=True, hide_input=True, help="New password")
@click.option("--dry-run", is_flag=True, help="Render the script but do not execute it")
@click.pass_context
def update(
    ctx: click.Context,
    username: str,
    statements: tuple[str, ...],
    password: str,
    dry_run: bool,
) -> None:
    """Run the password change statements for USERNAME.

    Rotating the root username changes the root password for this run
    only; the config file still holds the old value.
    """
    engine = _engine(ctx, dry_run=dry_run)
    request = UpdateUserRequest(
        username=username,
        password=ChangePassword(
            new_password=password,
            statements=Statements(commands=_statements(statements)),
        ),
    )
    try:
        engine.update_credential(request)
    except CredScriptError as e:
        click.echo(click.style("ERROR", fg="red") + f"  {e}", err=True)
        sys.exit(1)
    finally:
        engine.close()

    if dry_run:
        _report_dry_run(engine, [password])
    click.echo(click.style("OK", fg="green") + f"  updated {username}")
    if not dry_run and username == engine.manager.store.root_username:
        cfg: EngineConfig = ctx.obj["config"]
        source = cfg.config_path or "the root configuration"
        click.echo(
            click.style("WARNING", fg="yellow")
            + f"  root password rotated for this run only; update root.password in {source}",
            err=True,
        )


@cli.command()
@click.argument("username")
@click.argument("statements", nargs=-1, required=True)
@click.option("--dry-run", is_flag=True, help="Render the script but do not execute it")
@click.pass_context
def delete(
    ctx: click.Context,
    username: str,
    statements: tuple[str, ...],
    dry_run: bool,
) -> None:
    """Run the deletion statements for USERNAME."""
    engine = _engine(ctx, dry_run=dry_run)
    request = DeleteUserRequest(
        username=username,
        statements=Statements(commands=_statements(statements)),
    )
    try:
        engine.delete_credential(request)
    except CredScriptError as e:
        click.echo(click.style("ERROR", fg="red") + f"  {e}", err=True)
        sys.exit(1)
    finally:
        engine.close()

    if dry_run:
        _report_dry_run(engine, [])
    click.echo(click.style("OK", fg="green") + f"  deleted {username}")
