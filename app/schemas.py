"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class MessageEnvelope(BaseModel):
    """Rule-engine style message as delivered by the host runtime."""

    model_config = ConfigDict(extra="ignore")

    msg: Dict[str, Any] = Field(..., description="Raw device telemetry object.")
    metadata: Any = Field(
        default_factory=dict, description="Opaque companion value, forwarded unchanged."
    )
    msgType: Any = Field(default=None, description="Opaque message type, forwarded unchanged.")


class ReadingPayload(BaseModel):
    """Mapped reading handed to the downstream writer."""

    machine_id: Any = None
    total_Count: Any = None
    batch: Any = None
    Flavor: Any = None
    Timestamp: str = Field(..., description="Server-side UTC time of the mapping, ISO-8601.")


class MappedEnvelope(BaseModel):
    """Envelope returned to the next stage."""

    msg: ReadingPayload
    metadata: Any = None
    msgType: Any = None
