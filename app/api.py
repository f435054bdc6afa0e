"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from app.schemas import MappedEnvelope, MessageEnvelope
from services.mapper import PayloadMapper, build_default_mapper

logger = logging.getLogger(__name__)

router = APIRouter()


def get_mapper() -> PayloadMapper:
    return build_default_mapper()


def _map_envelope(mapper: PayloadMapper, envelope: MessageEnvelope) -> MappedEnvelope:
    mapped = mapper.transform(envelope.msg, envelope.metadata, envelope.msgType)
    return MappedEnvelope.model_validate(mapped.to_dict())


@router.post(
    "/transform",
    response_model=MappedEnvelope,
    summary="Map a single device message into a stamped reading.",
)
async def transform_message(
    envelope: MessageEnvelope,
    mapper: PayloadMapper = Depends(get_mapper),
) -> MappedEnvelope:
    return _map_envelope(mapper, envelope)


@router.post(
    "/transform/batch",
    response_model=List[MappedEnvelope],
    summary="Map several device messages, preserving their order.",
)
async def transform_batch(
    envelopes: List[MessageEnvelope],
    mapper: PayloadMapper = Depends(get_mapper),
) -> List[MappedEnvelope]:
    results = [_map_envelope(mapper, envelope) for envelope in envelopes]
    logger.info("Mapped message batch", extra={"record_count": len(results)})
    return results


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
