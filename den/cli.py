"""
Den Server CLI.

Entry point for running and inspecting the notes server.
Use --action to select what to run.

Usage:
    den-server --help
    den-server --action server --verbose
    den-server --action server --port 8099 --reload
    den-server --action config
    den-server --action token
    den-server --action health
    den-server --action info
"""

import asyncio
import subprocess
import sys

import click
import structlog

from den.backend.core.config import validate_project_root
from den.backend.core.logging import get_logger, setup_logging


@click.command()
@click.option(
    "--action", "-a",
    type=click.Choice(["server", "config", "token", "health", "info"]),
    default="info",
    help="What to run.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output (INFO level logging).",
)
@click.option(
    "--debug", "-d",
    is_flag=True,
    help="Enable debug output (DEBUG level logging).",
)
@click.option(
    "--host",
    default=None,
    help="Server host.",
)
@click.option(
    "--port",
    default=None,
    type=int,
    help="Server port.",
)
@click.option(
    "--reload",
    is_flag=True,
    help="Enable auto-reload (server only).",
)
def main(
    action: str,
    verbose: bool,
    debug: bool,
    host: str | None,
    port: int | None,
    reload: bool,
) -> None:
    """
    Den notes server CLI.

    \b
    Examples:
        den-server --action server --verbose
        den-server --action server --host 0.0.0.0 --port 7745
        den-server --action config
        den-server --action token
        den-server --action health
    """
    validate_project_root()

    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = "WARNING"

    setup_logging(level=log_level, format_type="console")
    structlog.contextvars.bind_contextvars(source="cli")

    logger = get_logger(__name__)
    logger.debug("CLI invoked", extra={"action": action, "log_level": log_level})

    if action == "server":
        run_server(logger, host, port, reload)
    elif action == "config":
        show_config(logger)
    elif action == "token":
        show_token(logger)
    elif action == "health":
        check_health(logger, host, port)
    else:
        show_info(logger)


def run_server(logger, host: str | None, port: int | None, reload: bool) -> None:
    """Start the notes server under uvicorn."""
    from den.backend.core.config import get_app_config

    try:
        server_config = get_app_config().application.server
    except Exception as e:
        logger.error("Failed to load configuration.", extra={"error": str(e)})
        click.echo(
            click.style(f"Error: Could not load config/settings: {e}", fg="red"),
            err=True,
        )
        sys.exit(1)

    server_host = host or server_config.host
    server_port = port or server_config.port

    logger.info(
        "Starting server",
        extra={"host": server_host, "port": server_port, "reload": reload},
    )

    cmd = [
        sys.executable, "-m", "uvicorn",
        "den.backend.main:app",
        "--host", server_host,
        "--port", str(server_port),
    ]

    if reload:
        cmd.append("--reload")

    click.echo(f"Starting Den at http://{server_host}:{server_port}")
    click.echo("Press Ctrl+C to stop\n")

    try:
        subprocess.run(cmd, check=True)
    except KeyboardInterrupt:
        logger.info("Server stopped")
    except subprocess.CalledProcessError as e:
        logger.error("Server failed to start", extra={"exit_code": e.returncode})
        sys.exit(e.returncode)


def show_config(logger) -> None:
    """Display loaded configuration. Secrets are masked."""
    from den.backend.core.config import get_app_config, get_database_path, get_settings

    try:
        app_config = get_app_config()
        settings = get_settings()
    except Exception as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        click.echo(click.style(f"Error loading configuration: {e}", fg="red"))
        sys.exit(1)

    sections = {
        "Application": app_config.application.model_dump(),
        "Database": app_config.database.model_dump(),
        "Logging": app_config.logging.model_dump(),
        "Notifier": app_config.notifier.model_dump(),
    }
    for title, values in sections.items():
        click.echo(f"{title} Settings (from YAML):")
        click.echo("-" * 40)
        _echo_mapping(values, indent=2)
        click.echo()

    click.echo("Environment:")
    click.echo("-" * 40)
    click.echo(f"  DEN_AUTH_TOKEN: {'set' if (settings.auth_token or '').strip() else 'not set (generated at startup)'}")
    click.echo(f"  DEN_DB_PATH: {settings.db_path or 'not set'}")
    click.echo(f"  database file: {get_database_path()}")

    logger.info("Configuration displayed successfully")


def _echo_mapping(values: dict, indent: int) -> None:
    pad = " " * indent
    for key, value in values.items():
        if isinstance(value, dict):
            click.echo(f"{pad}{key}:")
            _echo_mapping(value, indent + 2)
        else:
            click.echo(f"{pad}{key}: {value}")


def show_token(logger) -> None:
    """Print a fresh random token suitable for DEN_AUTH_TOKEN."""
    from den.backend.core.security import generate_token

    token = generate_token()
    logger.debug("Token generated")
    click.echo(token)
    click.echo(
        click.style("Set DEN_AUTH_TOKEN to this value on the server and in each client.", fg="yellow"),
        err=True,
    )


def check_health(logger, host: str | None, port: int | None) -> None:
    """Query a running server's readiness endpoint."""
    from den.backend.core.config import get_app_config
    from den.client.api import DenAPIClient
    from den.client.exceptions import ApiError, NetworkFailure

    server = get_app_config().application.server
    base_url = f"http://{host or server.host}:{port or server.port}"

    async def _check() -> dict:
        client = DenAPIClient(base_url, token="")
        try:
            return await client.ready()
        finally:
            await client.close()

    try:
        result = asyncio.run(_check())
    except NetworkFailure as e:
        logger.error("Server unreachable", extra={"url": base_url, "error": str(e)})
        click.echo(click.style(f"Error: Cannot connect to {base_url}", fg="red"), err=True)
        sys.exit(1)
    except ApiError as e:
        click.echo(click.style(f"Not ready ({e.status}): {e.message}", fg="red"), err=True)
        sys.exit(1)

    click.echo(f"Server at {base_url}: {click.style(result.get('status', 'unknown'), fg='green')}")
    for name, check in result.get("checks", {}).items():
        click.echo(f"  {name}: {check.get('status')}")


def show_info(logger) -> None:
    """Display application information."""
    from den.backend.core.config import get_app_config, get_server_base_url

    app_config = get_app_config()
    app = app_config.application

    click.echo(f"{app.name} {app.version}")
    click.echo(app.description)
    click.echo()
    click.echo(f"  Environment: {app.environment}")
    click.echo(f"  Server:      {get_server_base_url()}")
    click.echo(f"  Stream:      {get_server_base_url().replace('http', 'ws', 1)}/ws?token=...")
    click.echo()
    click.echo("Actions:")
    click.echo("  den-server --action server    Run the notes server")
    click.echo("  den-server --action config    Show loaded configuration")
    click.echo("  den-server --action token     Generate an auth token")
    click.echo("  den-server --action health    Check a running server")

    logger.debug("Info displayed")


if __name__ == "__main__":
    main()
