"""
Attachment Pipeline — CLI Entry Point

Usage:
    python -m attachment_pipeline.main ingest receipt.jpg --file-type receipt
    python -m attachment_pipeline.main classify application/pdf
    python -m attachment_pipeline.main serve --port 5050
    python -m attachment_pipeline.main config-status
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

# Find .env in project root
_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

import click

from .logging_config import setup_logging
from .cli.config import config_status
from .cli.ingest import classify_cmd, ingest

# Initialize logging
setup_logging()


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Attachment Pipeline — optimize and store expense attachments."""
    ctx.ensure_object(dict)
    ctx.obj["root"] = get_project_root()


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=5050, type=int, help="Port")
@click.option("--debug", is_flag=True, help="Enable Flask debug mode")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, debug: bool) -> None:
    """Run the upload API server."""
    from .admin.server import run_server

    click.echo(f"Serving uploads on http://{host}:{port}/api/upload")
    run_server(host=host, port=port, debug=debug, project_root=ctx.obj["root"])


cli.add_command(ingest)
cli.add_command(classify_cmd)
cli.add_command(config_status)


if __name__ == "__main__":
    cli()
