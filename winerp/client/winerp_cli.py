#!/usr/bin/env python3

from __future__ import annotations
import asyncio
import json
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import typer
from aioconsole import ainput
from rich.console import Console
from rich.table import Table

from winerp.client.client import WinerpClient
from winerp.client.config import ClientConfig
from winerp.core.MessageTypes import MessageType
from winerp.shared.envelope import Envelope, Payload, create_envelope
from winerp.shared.errors import WinerpError
from winerp.shared.log import get_logger

app = typer.Typer(help="Winerp client CLI")
console = Console()
logger = get_logger(__name__)

_HOST = typer.Option(None, help="Relay host (default: $WINERP_HOST or localhost)")
_PORT = typer.Option(None, help="Relay port (default: $WINERP_PORT or 2033)")
_NAME = typer.Option(None, "--name", help="Local peer name (default: $WINERP_LOCAL_NAME)")
_CONFIG = typer.Option(None, "--config", help="YAML file with host/port/local_name")


def _load_config(host: Optional[str], port: Optional[int], name: Optional[str],
                 config: Optional[Path]) -> ClientConfig:
    """Flags win over the YAML file, which wins over the environment."""
    try:
        if config:
            base = ClientConfig.from_yaml(config, local_name=name)
        else:
            base = ClientConfig.from_env(local_name=name)
        return replace(base, host=host or base.host, port=port or base.port)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def _parse_data(raw: Optional[str]) -> Payload:
    """JSON object if it parses as one, otherwise the plain string."""
    if raw is None:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    return value if isinstance(value, (dict, str)) else raw


def _print_payload(data: Payload) -> None:
    if isinstance(data, dict):
        console.print_json(json.dumps(data))
    else:
        console.print(data, markup=False)


@app.command()
def envelope(
    msg_type: str = typer.Argument(..., help="Message type name, e.g. REQUEST"),
    name: Optional[str] = typer.Option(None, "--name", help="Sender local name"),
    route: Optional[str] = typer.Option(None, help="Route name"),
    data: Optional[str] = typer.Option(None, help="JSON object or plain string"),
    uuid: Optional[str] = typer.Option(None, help="Correlation id"),
    destination: Optional[str] = typer.Option(None, help="Target peer"),
):
    """Print the wire form of an envelope and exit."""
    try:
        kind = MessageType[msg_type.upper()]
    except KeyError:
        raise typer.BadParameter(f"unknown type {msg_type}; one of {', '.join(m.name for m in MessageType)}")
    env = create_envelope(kind, local_name=name, route=route, data=_parse_data(data),
                          uuid=uuid, destination=destination)
    console.print_json(json.dumps(env.to_dict()))


@app.command()
def request(
    destination: str = typer.Argument(..., help="Peer that owns the route"),
    route: str = typer.Argument(..., help="Route name"),
    data: Optional[str] = typer.Option(None, help="JSON object or plain string"),
    timeout: float = typer.Option(60.0, help="Seconds to wait for the answer"),
    host: Optional[str] = _HOST,
    port: Optional[int] = _PORT,
    name: Optional[str] = _NAME,
    config: Optional[Path] = _CONFIG,
):
    """Send one request and print the response."""
    cfg = _load_config(host, port, name, config)

    async def main() -> Payload:
        async with WinerpClient(config=cfg) as client:
            return await client.request(destination, route, _parse_data(data), timeout=timeout)

    try:
        result = asyncio.run(main())
    except WinerpError as e:
        console.print(f"[red]{type(e).__name__}[/]: {e}")
        raise typer.Exit(code=1)
    _print_payload(result)


@app.command()
def inform(
    destinations: List[str] = typer.Argument(..., help="Peers to inform"),
    data: Optional[str] = typer.Option(None, help="JSON object or plain string"),
    route: Optional[str] = typer.Option(None, help="Optional route label"),
    host: Optional[str] = _HOST,
    port: Optional[int] = _PORT,
    name: Optional[str] = _NAME,
    config: Optional[Path] = _CONFIG,
):
    """Send one information message and exit."""
    cfg = _load_config(host, port, name, config)

    async def main() -> None:
        async with WinerpClient(config=cfg) as client:
            await client.inform(destinations, _parse_data(data), route=route)

    try:
        asyncio.run(main())
    except WinerpError as e:
        console.print(f"[red]{type(e).__name__}[/]: {e}")
        raise typer.Exit(code=1)
    console.print(f"Informed {', '.join(destinations)}")


@app.command()
def serve(
    echo: bool = typer.Option(False, help="Also register an 'echo' route"),
    host: Optional[str] = _HOST,
    port: Optional[int] = _PORT,
    name: Optional[str] = _NAME,
    config: Optional[Path] = _CONFIG,
):
    """Stay connected, answer 'ping' (and 'echo'), print inbound informs."""
    cfg = _load_config(host, port, name, config)
    client = WinerpClient(config=cfg)

    @client.route()
    async def ping(data: Payload) -> Payload:
        return {"pong": True}

    if echo:
        @client.route("echo")
        async def echo_route(data: Payload) -> Payload:
            return data

    @client.on_information
    def show(env: Envelope) -> None:
        console.print(f"[bold cyan]Info[/] from {env.id}: {env.data}")

    async def main() -> None:
        await client.start()
        console.print(f"[bold green]Serving[/] as {cfg.local_name} on {cfg.url}; routes: {', '.join(client.dispatcher.routes)}")
        await client.wait_closed()
        logger.info("Relay closed the connection for %s", cfg.local_name)
        console.print("[yellow]Connection closed[/]")

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except WinerpError as e:
        console.print(f"[red]{type(e).__name__}[/]: {e}")
        raise typer.Exit(code=1)


@app.command()
def shell(
    host: Optional[str] = _HOST,
    port: Optional[int] = _PORT,
    name: Optional[str] = _NAME,
    config: Optional[Path] = _CONFIG,
):
    """Interactive loop: /request, /inform, /status, /quit."""
    cfg = _load_config(host, port, name, config)

    async def main_loop() -> None:
        client = WinerpClient(config=cfg)

        @client.on_information
        def show(env: Envelope) -> None:
            console.print(f"[bold cyan]Info[/] from {env.id}: {env.data}")

        await client.start()
        console.print(f"[bold green]Winerp shell[/] as {cfg.local_name} on {cfg.url}")
        try:
            while True:
                line = (await ainput(": ")).strip()
                if not line:
                    continue
                if line in {"/quit", "/exit"}:
                    break
                if line == "/help":
                    console.print("/request <peer> <route> [data], /inform <peer,...> [data], /status, /quit")
                    continue
                if line == "/status":
                    table = Table(title="Client")
                    table.add_column("Field")
                    table.add_column("Value")
                    table.add_row("state", client.state.value)
                    table.add_row("on_hold", str(client.on_hold))
                    table.add_row("pending", str(client.correlator.pending_count))
                    console.print(table)
                    continue
                if line.startswith("/request "):
                    parts = line.split(" ", 3)
                    if len(parts) < 3:
                        console.print("Usage: /request <peer> <route> [data]")
                        continue
                    payload = _parse_data(parts[3] if len(parts) > 3 else None)
                    try:
                        _print_payload(await client.request(parts[1], parts[2], payload))
                    except WinerpError as e:
                        console.print(f"[red]{type(e).__name__}[/]: {e}")
                    continue
                if line.startswith("/inform "):
                    parts = line.split(" ", 2)
                    payload = _parse_data(parts[2] if len(parts) > 2 else None)
                    try:
                        await client.inform(parts[1].split(","), payload)
                    except WinerpError as e:
                        console.print(f"[red]{type(e).__name__}[/]: {e}")
                    continue
                console.print("Unknown command. /help")
        finally:
            await client.close()

    asyncio.run(main_loop())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
