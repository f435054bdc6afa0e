from __future__ import annotations

import json
from typing import Any, Dict, Iterable

import typer

from models.records import READING_FIELDS, TIMESTAMP_FIELD


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def echo_json(document: Any, compact: bool = False) -> None:
    if compact:
        typer.echo(json.dumps(document, separators=(",", ":")))
    else:
        typer.echo(json.dumps(document, indent=2))


def render_envelope(payload: Dict[str, Any]) -> None:
    reading = payload.get("msg") or {}
    echo_heading("Reading")
    echo_key_values(
        [(name, reading.get(name)) for name in (*READING_FIELDS, TIMESTAMP_FIELD)]
    )

    typer.echo()
    echo_heading("Envelope")
    echo_key_values(
        [
            ("msgType", payload.get("msgType")),
            ("metadata", json.dumps(payload.get("metadata"))),
        ]
    )
