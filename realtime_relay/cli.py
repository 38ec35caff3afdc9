"""
CLI for running and inspecting the realtime relay.

Provides commands for serving the relay and for printing the effective
configuration with the upstream credential masked.
"""

import typer
import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from realtime_relay import application
from realtime_relay.exceptions import ConfigurationError
from realtime_relay.logging import setup_logging
from realtime_relay.settings import Settings, load_settings

typer_app = typer.Typer(
    name="realtime-relay",
    help="Realtime relay - bridge browser WebSockets to an upstream realtime API",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


def _load_or_exit(**overrides) -> Settings:
    try:
        return load_settings(**overrides)
    except ConfigurationError as exc:
        err_console.print(
            Panel.fit(
                f"[bold red]{exc}[/bold red]\n\n"
                "Set OPENAI_API_KEY in the environment or in a .env file.",
                title="Configuration error",
                border_style="red",
            )
        )
        raise typer.Exit(code=1) from exc


@typer_app.command(name="serve")
def serve(
    host: str | None = typer.Option(None, "--host", help="Listen address"),
    port: int | None = typer.Option(
        None, "--port", "-p", help="Listen port (default 8081)"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level"),
):
    """
    Run the relay server.

    Exits with status 1, without binding the port, when the upstream
    credential is not configured.

    Example:
        realtime-relay serve --port 8081
    """
    settings = _load_or_exit(RELAY_HOST=host, RELAY_PORT=port, LOG_LEVEL=log_level)

    setup_logging(
        level=settings.LOG_LEVEL,
        log_file=settings.LOG_FILE_PATH,
        environment=settings.ENVIRONMENT,
        excluded_paths=settings.LOG_EXCLUDED_PATHS,
        loki_url=settings.LOKI_URL if settings.LOKI_ENABLED else None,
        loki_version=settings.LOKI_VERSION,
    )

    uvicorn.run(
        application(settings),
        host=settings.RELAY_HOST,
        port=settings.RELAY_PORT,
        ws_max_size=settings.MAX_MESSAGE_SIZE_BYTES,
        log_config=None,
    )


@typer_app.command(name="config")
def show_config():
    """
    Display the effective relay configuration.

    The upstream credential is always shown masked.

    Example:
        realtime-relay config
    """
    settings = _load_or_exit()

    table = Table("Setting", "Value", title="Relay configuration", show_lines=True)
    for name, value in settings.model_dump().items():
        table.add_row(name, str(value))

    console.print(table)


if __name__ == "__main__":
    typer_app()
