"""Command-line interface for form-courier.

Usage:
    form-courier serve [--host HOST] [--port PORT]
    form-courier sites [--json]
    form-courier sign --site acme body.json

All commands read the same configuration as the server: the INI file named
by ``--config`` (or ``FC_CONFIG``, default ``config.ini``) with environment
variables as fallbacks.

Example:
    $ form-courier sign --site acme payload.json
    3f1c...e9   # value for the X-Signature header
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

from form_courier.auth import sign_body
from form_courier.config_loader import Settings, load_settings
from form_courier.errors import ConfigError

console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    console.print_json(json.dumps(data, indent=2, default=str))


def _load(config: Optional[str]) -> Settings:
    try:
        return load_settings(config_path=config)
    except ConfigError as exc:
        print_error(str(exc))
        sys.exit(1)


@click.group()
@click.version_option(package_name="form-courier")
@click.option("--config", "-c", default=None, help="Path to config.ini (default: $FC_CONFIG or config.ini).")
@click.pass_context
def main(ctx: click.Context, config: Optional[str]) -> None:
    """Multi-tenant contact-form intake gateway."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@main.command("serve")
@click.option("--host", "-h", default=None, help="Host to bind to (default: from LISTEN_ADDR).")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on (default: from LISTEN_ADDR).")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]) -> None:
    """Start the HTTP server."""
    import uvicorn

    from form_courier.api import create_app
    from form_courier.logger import configure_logging
    from form_courier.mailer import SmtpMailSender
    from form_courier.pipeline import IntakePipeline

    settings = _load(ctx.obj["config"])
    configure_logging(settings.log_level, settings.log_format)
    app = create_app(IntakePipeline(settings, SmtpMailSender(settings.smtp)))
    uvicorn.run(app, host=host or settings.host, port=port or settings.port, log_config=None)


@main.command("sites")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def sites(ctx: click.Context, as_json: bool) -> None:
    """List configured sites (secrets are never shown)."""
    settings = _load(ctx.obj["config"])
    rows = [
        {
            "key": tenant.key,
            "to": tenant.to,
            "from": tenant.from_addr,
            "subject_prefix": tenant.subject_prefix,
            "allowed_origins": list(tenant.allowed_origins),
            "signed": tenant.requires_signature,
            "smtp": f"{tenant.smtp.host}:{tenant.smtp.port}" if tenant.smtp else None,
        }
        for tenant in settings.registry.values()
    ]
    if as_json:
        print_json(rows)
        return

    if not rows:
        console.print("[dim]No sites configured.[/dim]")
        return

    table = Table(title="Sites")
    table.add_column("Key", style="cyan")
    table.add_column("To")
    table.add_column("Origins")
    table.add_column("Signed", justify="center")
    table.add_column("SMTP")
    for row in rows:
        table.add_row(
            row["key"],
            row["to"],
            ", ".join(row["allowed_origins"]) or "-",
            "[green]✓[/green]" if row["signed"] else "-",
            row["smtp"] or "global",
        )
    console.print(table)


@main.command("sign")
@click.option("--site", "-s", "site_key", required=True, help="Site whose secret signs the body.")
@click.argument("body_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def sign(ctx: click.Context, site_key: str, body_file: Path) -> None:
    """Print the X-Signature header value for BODY_FILE."""
    settings = _load(ctx.obj["config"])
    tenant = settings.registry.resolve(site_key)
    if tenant is None:
        print_error(f"Unknown site '{site_key}'")
        sys.exit(1)
    if not tenant.secret:
        print_error(f"Site '{site_key}' has no secret; requests need no signature")
        sys.exit(1)
    click.echo(sign_body(body_file.read_bytes(), tenant.secret))


if __name__ == "__main__":
    main()
