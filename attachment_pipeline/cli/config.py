"""
CLI config commands — inspect the effective pipeline settings.

Usage:
    python -m attachment_pipeline.main config-status [--json]
"""

from __future__ import annotations

import click

from ..validation import ConfigurationError


@click.command("config-status")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def config_status(ctx: click.Context, as_json: bool) -> None:
    """
    Show the effective configuration (secrets are never printed).

    Reports whether the conversion service is configured, which blob
    store is active and whether uploads require a bearer token.
    """
    import json as json_lib

    from ..config.loader import load_settings

    try:
        settings = load_settings()
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    status = settings.to_status_dict()

    if as_json:
        click.echo(json_lib.dumps(status, indent=2))
        return

    click.secho("Attachment Pipeline — configuration", bold=True)
    click.echo()
    for key, value in status.items():
        if isinstance(value, bool):
            mark = click.style("✓", fg="green") if value else click.style("✗", fg="yellow")
            click.echo(f"  {mark} {key}")
        else:
            click.echo(f"    {key}: {value}")

    if not settings.has_conversion():
        click.echo()
        click.secho(
            "  PDFs will be stored without optimization (set CLOUDCONVERT_API_KEY).",
            fg="yellow",
        )
