from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

import typer

from cli.client import ApiClient
from cli.config import DEFAULT_MSG_TYPE, CLIConfig, load_config
from cli.render import echo_json, render_envelope
from logging_config import configure_logging
from services.mapper import build_default_mapper


@dataclass
class CLIState:
    config: CLIConfig
    client: Optional[ApiClient] = None


app = typer.Typer(
    help="Map raw device telemetry into stamped reading payloads.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


def _get_client(ctx: typer.Context) -> ApiClient:
    state = _get_state(ctx)
    if state.client is None:
        state.client = ApiClient(state.config)
        ctx.call_on_close(state.client.close)
    return state.client


def _load_document(handle: typer.FileText) -> Any:
    try:
        return json.load(handle)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Input is not valid JSON: {exc}", param_hint="FILE") from exc


def _to_envelope(document: Any, msg_type: str) -> Dict[str, Any]:
    if not isinstance(document, dict):
        raise typer.BadParameter("Expected a JSON object.", param_hint="FILE")
    if "msg" not in document:
        return {"msg": document, "metadata": {}, "msgType": msg_type}
    msg = document["msg"]
    if not isinstance(msg, dict):
        raise typer.BadParameter("Envelope 'msg' must be a JSON object.", param_hint="FILE")
    return {
        "msg": msg,
        "metadata": document.get("metadata", {}),
        "msgType": document.get("msgType", msg_type),
    }


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Mapper API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for the mapper service to respond.",
    ),
) -> None:
    """Entry point for the CLI."""
    configure_logging()
    config = load_config(base_url=base_url, request_timeout=timeout)
    ctx.obj = CLIState(config=config)


@app.command("map")
def map_command(
    file: typer.FileText = typer.Argument(..., help="JSON message or envelope file, '-' for stdin."),
    msg_type: str = typer.Option(
        DEFAULT_MSG_TYPE,
        "--msg-type",
        help="msgType attached when the input is a bare message.",
    ),
    compact: bool = typer.Option(False, "--compact", help="Print single-line JSON."),
) -> None:
    """Map device messages locally and print the resulting envelopes."""
    document = _load_document(file)
    mapper = build_default_mapper()

    if isinstance(document, list):
        envelopes = [_to_envelope(item, msg_type) for item in document]
        results: List[Dict[str, Any]] = [
            mapper.transform(env["msg"], env["metadata"], env["msgType"]).to_dict()
            for env in envelopes
        ]
        echo_json(results, compact=compact)
        return

    envelope = _to_envelope(document, msg_type)
    mapped = mapper.transform(envelope["msg"], envelope["metadata"], envelope["msgType"])
    echo_json(mapped.to_dict(), compact=compact)


@app.command("remote")
def remote_command(
    ctx: typer.Context,
    file: typer.FileText = typer.Argument(..., help="JSON message or envelope file, '-' for stdin."),
    msg_type: str = typer.Option(
        DEFAULT_MSG_TYPE,
        "--msg-type",
        help="msgType attached when the input is a bare message.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON response."),
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Override the mapper API base URL for this request.",
    ),
) -> None:
    """Send a device message to a running mapper service."""
    state = _get_state(ctx)
    if base_url:
        state.config = replace(state.config, base_url=base_url.rstrip("/"))
    envelope = _to_envelope(_load_document(file), msg_type)
    client = _get_client(ctx)
    if as_json:
        echo_json(client.transform(envelope))
        return
    typer.echo(f"Sending message to {state.config.base_url} ...")
    payload = client.transform(envelope)
    typer.echo()
    render_envelope(payload)
