from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import uvicorn

from app.main import create_app
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from logging_config import configure_logging
from settings import ConfigurationError, Settings, config_path_from_env, load_settings
from storage.base import StoreClient
from storage.influx import StoreConnectionError, connect_store

logger = logging.getLogger(__name__)


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Air-quality collector: run the ingest server or push test measurements.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Collector base URL for `send` (defaults to COLLECTOR_BASE_URL env or http://localhost:8080).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for the collector to answer.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


def build_server(settings: Settings, store: StoreClient) -> uvicorn.Server:
    """uvicorn server for the collector app; SIGINT/SIGTERM drain the pipeline."""
    timeout = int(settings.server.request_timeout)
    return uvicorn.Server(
        uvicorn.Config(
            create_app(settings, store=store),
            host=settings.server.host,
            port=settings.server.port,
            timeout_keep_alive=timeout,
            timeout_graceful_shutdown=timeout,
            log_config=None,
        )
    )


@app.command("serve")
def serve_command(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the YAML configuration file (defaults to COLLECTOR_CONFIG env or config.yaml).",
    ),
) -> None:
    """Run the collector until SIGINT or SIGTERM, then flush and exit."""
    config_path = str(config) if config is not None else config_path_from_env()
    try:
        settings = load_settings(config_path)
        configure_logging(settings.log_level)
        store = connect_store(settings.influxdb)
        server = build_server(settings, store)
    except (ConfigurationError, StoreConnectionError) as exc:
        configure_logging()
        logger.critical(
            "failed to initialize collector",
            extra={"op": "cli.serve", "error": str(exc)},
        )
        raise typer.Exit(code=1) from exc

    logger.info(
        "listening",
        extra={"op": "cli.serve", "listen_addr": settings.server.listen_addr},
    )
    server.run()


@app.command("send")
def send_command(
    ctx: typer.Context,
    sensor_path: str = typer.Argument(..., help="Sensor path segment, e.g. airgradient:office-1."),
    body: Optional[Path] = typer.Option(
        None,
        "--body",
        exists=True,
        dir_okay=False,
        readable=True,
        help="JSON file to send as-is instead of building a body from options.",
    ),
    wifi: Optional[int] = typer.Option(None, "--wifi", help="WiFi signal strength."),
    co2: Optional[int] = typer.Option(None, "--co2", help="CO2 in ppm."),
    pm01: Optional[int] = typer.Option(None, "--pm01", help="PM1.0."),
    pm02: Optional[int] = typer.Option(None, "--pm02", help="PM2.5."),
    pm10: Optional[int] = typer.Option(None, "--pm10", help="PM10."),
    pm003_count: Optional[int] = typer.Option(None, "--pm003-count", help="Particle count at 0.3um."),
    tvoc_index: Optional[int] = typer.Option(None, "--tvoc-index", help="VOC index."),
    nox_index: Optional[int] = typer.Option(None, "--nox-index", help="NOx index."),
    temperature: Optional[float] = typer.Option(None, "--temp", help="Ambient temperature."),
    humidity: Optional[int] = typer.Option(None, "--humidity", help="Relative humidity."),
) -> None:
    """Push one measurement to a running collector."""
    state = _get_state(ctx)
    if body is not None:
        try:
            payload: Dict[str, Any] = json.loads(body.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"{body} is not valid JSON: {exc}") from exc
    else:
        fields = {
            "wifi": wifi,
            "rco2": co2,
            "pm01": pm01,
            "pm02": pm02,
            "pm10": pm10,
            "pm003_count": pm003_count,
            "tvoc_index": tvoc_index,
            "nox_index": nox_index,
            "atmp": temperature,
            "rhum": humidity,
        }
        payload = {key: value for key, value in fields.items() if value is not None}

    typer.echo(f"Sending measurement for {sensor_path} to {state.config.base_url} ...")
    status_code = state.client.send_measurement(sensor_path, payload)
    typer.secho(f"Measurement accepted. status={status_code}", fg=typer.colors.GREEN)
