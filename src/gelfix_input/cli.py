from __future__ import annotations

import json
import queue
import socket
import threading
import time
from typing import Any, Dict, List, Optional

import typer
from pydantic import ValidationError

from gelfix_common.config import load_config
from gelfix_common.logging import setup_logging
from gelfix_common.models import AppConfig
from gelfix_input.chunks import chunk_payload, encode_message
from gelfix_input.events import Event
from gelfix_input.forwarder import EventForwarder, build_destination
from gelfix_input.listener import GelfListener

log = setup_logging("gelfix.cli")

app = typer.Typer(help="gelfix: GELF UDP input", no_args_is_help=True)


def _load(config: Optional[str]) -> AppConfig:
    try:
        return load_config(config)
    except (FileNotFoundError, ValueError, ValidationError) as e:
        raise typer.BadParameter(str(e)) from e


def _parse_fields(items: List[str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for item in items:
        if "=" not in item:
            raise typer.BadParameter(f"field must be key=value, got: {item}")
        k, v = item.split("=", 1)
        out[k.strip()] = v
    return out


@app.command("run")
def run(
    config: Optional[str] = typer.Option(None, "--config", "-c"),
) -> None:
    """Listen for GELF datagrams and forward events to the configured output."""
    cfg = _load(config)

    events: "queue.Queue[Event]" = queue.Queue(maxsize=cfg.queue_max_size)
    stop = threading.Event()
    listener = GelfListener(cfg.input)
    forwarder = EventForwarder(
        events,
        build_destination(cfg.output),
        batch_max_events=cfg.output.batch_max_events,
        batch_max_seconds=cfg.output.batch_max_seconds,
    )

    thread = threading.Thread(
        target=listener.run, args=(events, stop), name="gelf-listener", daemon=True
    )
    thread.start()
    try:
        forwarder.run(stop)
    except KeyboardInterrupt:
        log.info("interrupted, shutting down")
        listener.stop()
        forwarder.run(stop)
    finally:
        listener.stop()
        thread.join(timeout=cfg.input.receive_timeout_seconds + 1.0)


@app.command("send")
def send(
    host: str = typer.Option("127.0.0.1", "--host", help="Destination host"),
    port: int = typer.Option(12201, "--port", help="Destination UDP port"),
    message: str = typer.Option(..., "--message", "-m", help="short_message to send"),
    field: List[str] = typer.Option(
        [], "--field", "-f", help="Additional field as key=value"
    ),
    chunk_size: int = typer.Option(1420, "--chunk-size", help="Max bytes per chunk"),
    compress: bool = typer.Option(True, "--compress/--no-compress"),
    count: int = typer.Option(1, "--count", "-n", help="How many messages"),
    interval: float = typer.Option(0.0, "--interval", help="Seconds between sends"),
) -> None:
    """
    Send GELF messages over UDP, chunking them when they are large.
    """
    extra = _parse_fields(field)
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sent = 0
    try:
        for _ in range(count):
            fields: Dict[str, Any] = {
                "version": "1.1",
                "host": socket.gethostname(),
                "short_message": message,
                "timestamp": time.time(),
            }
            fields.update(extra)
            for datagram in chunk_payload(encode_message(fields, compress), chunk_size):
                sock.sendto(datagram, (host, port))
            sent += 1
            if interval:
                time.sleep(interval)
    finally:
        sock.close()
    typer.echo(f"sent={sent} -> {host}:{port}")


@app.command("validate-config")
def validate_config(
    config: str = typer.Option(..., "--config", "-c", help="gelfix YAML config file"),
) -> None:
    """
    Validate a config file and print the effective settings.
    """
    cfg = _load(config)
    typer.echo(json.dumps(cfg.model_dump(mode="json"), indent=2))
    typer.echo("ok: config is valid")


if __name__ == "__main__":
    app()
