"""Main CLI entry point for tokenflight."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click
from rich.console import Console
from rich.table import Table

from tokenflight import __version__
from tokenflight.client import SessionClient, describe_failure
from tokenflight.core.audit import AuditLogger, FileAuditBackend
from tokenflight.core.errors import RequestFailed, TokenflightError
from tokenflight.core.session import FileSessionStore
from tokenflight.models.session import Session
from tokenflight.utils.config import load_config
from tokenflight.utils.state import audit_log_path, config_path, resolve_root, session_path

T = TypeVar("T")

err_console = Console(stderr=True)


@click.group()
@click.version_option(version=__version__, prog_name="tokenflight")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=resolve_root(),
    show_default=True,
    help="State root holding config.yaml, session.json and audit.jsonl",
)
@click.option(
    "--base-url",
    envvar="TOKENFLIGHT_BASE_URL",
    help="API base URL (overrides config.yaml)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, root: Path, base_url: str | None) -> None:
    """Keep an authenticated API session and send requests through it."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["root"] = root
    ctx.obj["base_url"] = base_url


def _build_client(ctx: click.Context) -> SessionClient:
    root = ctx.obj["root"]
    config = load_config(config_path(root), overrides={"base_url": ctx.obj.get("base_url")})
    client = SessionClient(
        config,
        store=FileSessionStore(session_path(root)),
        audit=AuditLogger(FileAuditBackend(audit_log_path(root))),
    )
    client.on_session_ended(
        lambda: click.echo("Session ended. Run `tokenflight login` to sign in again.", err=True)
    )
    return client


def _run(ctx: click.Context, action: Callable[[SessionClient], Awaitable[T]]) -> T:
    """Run *action* against a fresh client, mapping library errors to exit 1."""

    async def _main() -> T:
        async with _build_client(ctx) as client:
            return await action(client)

    try:
        return asyncio.run(_main())
    except RequestFailed as exc:
        click.echo(f"Error: {describe_failure(exc)}", err=True)
        if exc.payload is not None and not isinstance(exc.payload, str):
            click.echo(json.dumps(exc.payload, indent=2), err=True)
        sys.exit(1)
    except TokenflightError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@cli.command("login")
@click.option("--email", required=True, help="Account email")
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@click.pass_context
def login_cmd(ctx: click.Context, email: str, password: str) -> None:
    """Log in and persist the session."""
    session = _run(ctx, lambda client: client.login(email, password))
    click.echo(f"Logged in as {_display_name(session)}.")


@cli.command("signup")
@click.option("--name", required=True, help="Display name")
@click.option("--email", required=True, help="Account email")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Account password",
)
@click.pass_context
def signup_cmd(ctx: click.Context, name: str, email: str, password: str) -> None:
    """Create an account and persist the new session."""
    session = _run(ctx, lambda client: client.signup(name, email, password))
    click.echo(f"Account created. Logged in as {_display_name(session)}.")


@cli.command("logout")
@click.pass_context
def logout_cmd(ctx: click.Context) -> None:
    """Forget the stored session."""
    _run(ctx, lambda client: client.logout())
    click.echo("Logged out.")


@cli.command("status")
@click.pass_context
def status_cmd(ctx: click.Context) -> None:
    """Show the stored session (tokens masked)."""
    session = FileSessionStore(session_path(ctx.obj["root"])).read()
    if session is None:
        click.echo("Not logged in.")
        sys.exit(1)
    Console().print(_session_table(session))


@cli.command("refresh")
@click.pass_context
def refresh_cmd(ctx: click.Context) -> None:
    """Exchange the refresh token for a new token pair now."""
    session = _run(ctx, lambda client: client.refresh())
    click.echo(f"Session refreshed for {_display_name(session)}.")


@cli.command("request")
@click.argument("method", type=click.Choice(["GET", "POST", "PUT", "PATCH", "DELETE"], case_sensitive=False))
@click.argument("path")
@click.option("--json", "json_body", help="JSON request body")
@click.option("--param", "-p", "params", multiple=True, help="Query parameter as key=value (repeatable)")
@click.pass_context
def request_cmd(
    ctx: click.Context,
    method: str,
    path: str,
    json_body: str | None,
    params: tuple[str, ...],
) -> None:
    """Send METHOD PATH with the session's credentials and print the response."""
    kwargs: dict[str, Any] = {}
    if json_body is not None:
        try:
            kwargs["json"] = json.loads(json_body)
        except json.JSONDecodeError as exc:
            raise click.BadParameter(f"invalid JSON: {exc}", param_hint="--json") from exc
    if params:
        kwargs["params"] = _parse_params(params)

    async def _send(client: SessionClient) -> tuple[int, str, Any]:
        response = await client.request(method.upper(), path, **kwargs)
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            return response.status_code, "json", response.json()
        return response.status_code, "text", response.text

    status, kind, body = _run(ctx, _send)
    err_console.print(f"[dim]HTTP {status}[/dim]")
    if kind == "json":
        click.echo(json.dumps(body, indent=2))
    else:
        click.echo(body)


def _parse_params(pairs: tuple[str, ...]) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got '{pair}'", param_hint="--param")
        parsed[key] = value
    return parsed


def _display_name(session: Session) -> str:
    if session.user is None:
        return "unknown user"
    return session.user.email or session.user.name or str(session.user.id)


def _mask(token: str | None) -> str:
    if not token:
        return "-"
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}…{token[-4:]}"


def _session_table(session: Session) -> Table:
    table = Table(title="Session", show_header=False, pad_edge=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    user = session.user
    table.add_row("User", _display_name(session))
    table.add_row("Role", (user.role if user else None) or "-")
    table.add_row("Access token", _mask(session.access_token))
    table.add_row("Refresh token", _mask(session.refresh_token))
    return table


if __name__ == "__main__":
    cli()
