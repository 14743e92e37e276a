"""nica-auth CLI - Command line interface."""

from __future__ import annotations

import json
import logging
import sys

import click
import structlog
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from nica_auth.errors import NicaAuthError

console = Console()

SESSION_SECRET_ENV = "NICA_SESSION_SECRET"


def _configure_logging(log_level: str) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
    )


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {escape(message)}")
    sys.exit(1)


@click.group()
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="warning",
    help="Log level (default: warning)",
)
@click.pass_context
def main(ctx: click.Context, config_file: str | None, log_level: str):
    """nica-auth - OAuth login and stateless sessions.

    Inspect providers, build authorization URLs, and encode or decode
    session tokens.

    Examples:

        nica-auth providers

        nica-auth auth-url github --client-id ID --client-secret SECRET

        nica-auth session decode TOKEN --secret "$NICA_SESSION_SECRET"

    Use 'nica-auth COMMAND --help' for more info on specific commands.
    """
    _configure_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file


@main.command()
def version():
    """Show version information."""
    from nica_auth import __version__

    console.print(f"[bold]Version:[/bold] {__version__}")
    console.print(f"[bold]Python:[/bold] {escape(sys.version)}")


@main.command()
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def providers(json_output: bool):
    """List the built-in identity providers."""
    from nica_auth.oauth.providers import PROVIDERS

    if json_output:
        click.echo(
            json.dumps(
                {
                    provider.value: {
                        "authorization_url": descriptor.authorization_url,
                        "scopes": list(descriptor.scopes),
                    }
                    for provider, descriptor in PROVIDERS.items()
                },
                indent=2,
            )
        )
        return

    table = Table(title="Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Default Scopes", style="green")
    table.add_column("Authorization URL", style="dim")
    for provider, descriptor in PROVIDERS.items():
        scopes = " ".join(descriptor.scopes) or "[dim]none[/dim]"
        table.add_row(provider.value, scopes, descriptor.authorization_url)
    console.print(table)


@main.command("auth-url")
@click.argument("provider")
@click.option("--client-id", required=True, help="OAuth client id")
@click.option("--client-secret", required=True, help="OAuth client secret")
@click.option("--redirect-uri", default=None, help="Callback URL (default: ORIGIN/api/auth/PROVIDER/callback)")
@click.option("--scope", "scopes", multiple=True, help="Scope to request (repeatable)")
@click.option("--origin", default=None, help="Application origin for the default redirect URI")
@click.option("--domain", default=None, help="Tenant domain (auth0)")
@click.option("--state", default=None, help="State value to append")
def auth_url(
    provider: str,
    client_id: str,
    client_secret: str,
    redirect_uri: str | None,
    scopes: tuple[str, ...],
    origin: str | None,
    domain: str | None,
    state: str | None,
):
    """Print the authorization URL for PROVIDER."""
    from nica_auth.oauth.client import ProviderClient

    settings = {
        "client_id": client_id,
        "client_secret": client_secret,
        "redirect_uri": redirect_uri,
        "scopes": list(scopes) or None,
        "domain": domain,
    }
    try:
        client = ProviderClient.from_settings(provider, settings, origin=origin)
    except NicaAuthError as e:
        _fail(str(e))
        return

    click.echo(client.build_authorization_url(state))


@main.group()
def session():
    """Encode and inspect session tokens.

    The secret is read from --secret or the NICA_SESSION_SECRET
    environment variable.

    Examples:

        nica-auth session encode '{"user_id": "42"}'

        nica-auth session decode TOKEN

        nica-auth session peek TOKEN     # ignores expiry
    """
    pass


def _secret_option(func):
    return click.option(
        "--secret",
        envvar=SESSION_SECRET_ENV,
        required=True,
        help=f"Session secret (env: {SESSION_SECRET_ENV})",
    )(func)


def _strategy_option(func):
    return click.option(
        "--strategy",
        type=click.Choice(["encrypted", "signed"]),
        default="encrypted",
        help="Token envelope (default: encrypted)",
    )(func)


def _build_codec(secret: str, strategy: str, token_exp: int | None = None):
    from nica_auth.session.codec import DEFAULT_TOKEN_EXP, SessionCodec

    try:
        return SessionCodec(secret, strategy, DEFAULT_TOKEN_EXP if token_exp is None else token_exp)
    except NicaAuthError as e:
        _fail(str(e))


@session.command("encode")
@click.argument("payload")
@_secret_option
@_strategy_option
@click.option("--token-exp", type=int, default=None, help="Token lifetime in seconds (default: 7 days)")
def session_encode(payload: str, secret: str, strategy: str, token_exp: int | None):
    """Encode a JSON object PAYLOAD into a session token."""
    try:
        data = json.loads(payload)
    except ValueError as e:
        _fail(f"Payload is not valid JSON: {e}")
        return
    if not isinstance(data, dict):
        _fail("Payload must be a JSON object")
        return

    codec = _build_codec(secret, strategy, token_exp)
    click.echo(codec.encode(data))


def _print_payload(token: str, secret: str, strategy: str, validate_expiry: bool) -> None:
    codec = _build_codec(secret, strategy)
    payload = codec.decode(token, validate_expiry=validate_expiry)
    if payload is None:
        reason = "invalid or expired" if validate_expiry else "invalid"
        _fail(f"Token is {reason}")
        return
    click.echo(json.dumps(payload, indent=2, sort_keys=True))


@session.command("decode")
@click.argument("token")
@_secret_option
@_strategy_option
def session_decode(token: str, secret: str, strategy: str):
    """Decode TOKEN, rejecting it once expired."""
    _print_payload(token, secret, strategy, validate_expiry=True)


@session.command("peek")
@click.argument("token")
@_secret_option
@_strategy_option
def session_peek(token: str, secret: str, strategy: str):
    """Decode TOKEN even if expired (diagnostics only)."""
    _print_payload(token, secret, strategy, validate_expiry=False)


@main.group()
def config():
    """View and validate configuration settings.

    All settings can be configured via environment variables with the
    NICA_ prefix and "__" between nested keys, or with --config FILE.

    Examples:

        nica-auth config show            # Show all config settings

        nica-auth -c nica.yaml config validate
    """
    pass


def _load_config(ctx: click.Context):
    from nica_auth.core.config import clear_config, get_config

    clear_config()
    try:
        return get_config(ctx.obj.get("config_file"))
    except (ValueError, FileNotFoundError) as e:
        _fail(f"Failed to load config: {e}")


@config.command("show")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def config_show(ctx: click.Context, json_output: bool):
    """Show current configuration settings.

    Values come from the config file, environment variables, or defaults.
    Secrets are masked.
    """
    cfg = _load_config(ctx)
    display = cfg.to_display_dict()

    if json_output:
        click.echo(json.dumps(display, indent=2))
        return

    console.print("[bold]Current Configuration[/bold]\n")

    auth = dict(display["auth"])
    providers = auth.pop("providers")
    _print_section("Auth", auth, "NICA_AUTH__")
    for name, settings in providers.items():
        _print_section(f"Provider: {name}", settings, f"NICA_AUTH__PROVIDERS__{name.upper()}__")

    if display["session"] is None:
        console.print("[dim]Sessions not configured[/dim]")
        return
    session_display = dict(display["session"])
    cookie = session_display.pop("cookie")
    _print_section("Session", session_display, "NICA_SESSION__")
    _print_section("Session Cookie", cookie, "NICA_SESSION__COOKIE__")


def _print_section(title: str, settings: dict, env_prefix: str) -> None:
    table = Table(title=title)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Env Variable", style="dim")

    for key, value in settings.items():
        value_str = str(value) if value is not None else "[dim]None[/dim]"
        table.add_row(key, value_str, f"{env_prefix}{key.upper()}")

    console.print(table)
    console.print()


@config.command("validate")
@click.pass_context
def config_validate(ctx: click.Context):
    """Validate current configuration.

    Builds every configured component so secrets, scopes, and cookie
    attributes are checked exactly as at runtime.
    """
    from nica_auth.oauth.engine import AuthEngine
    from nica_auth.session.store import SessionStore

    cfg = _load_config(ctx)

    errors = []
    warnings = []

    if cfg.auth.providers:
        try:
            AuthEngine.from_settings(cfg.auth)
        except NicaAuthError as e:
            errors.append(str(e))
    else:
        warnings.append("no providers configured")

    if cfg.session is not None:
        try:
            SessionStore.from_settings(cfg.session)
        except NicaAuthError as e:
            errors.append(str(e))
        if cfg.session.strategy == "signed":
            warnings.append("signed sessions are readable by the client; store no secrets in them")
    else:
        warnings.append("sessions not configured")

    if errors:
        console.print("[red bold]Configuration Errors:[/red bold]")
        for error in errors:
            console.print(f"  [red]x[/red] {escape(error)}")
        console.print()

    if warnings:
        console.print("[yellow bold]Configuration Warnings:[/yellow bold]")
        for warning in warnings:
            console.print(f"  [yellow]![/yellow] {warning}")
        console.print()

    if not errors and not warnings:
        console.print("[green]OK - Configuration is valid[/green]")
    elif not errors:
        console.print("[green]OK - Configuration is valid (with warnings)[/green]")
    else:
        console.print("[red]ERROR - Configuration has errors[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
