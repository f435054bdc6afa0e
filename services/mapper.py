"""Field mapping from raw device telemetry to the downstream reading payload."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Optional

from models.records import READING_FIELDS, DeviceReading, MappedMessage
from settings import get_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Render ``moment`` as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Naive datetimes are taken to be UTC already.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _read_field(msg: Any, name: str) -> Any:
    if isinstance(msg, Mapping):
        return msg.get(name)
    return getattr(msg, name, None)


class PayloadMapper:
    """Copies the reading fields out of a device message and stamps it.

    No validation happens here: whatever the device sent for each field is
    passed through, and a field it did not send becomes ``None``.
    """

    def __init__(self, clock: Optional[Clock] = None, log_payloads: bool = False) -> None:
        self._clock = clock or utc_now
        self.log_payloads = log_payloads

    def build_reading(self, msg: Any) -> DeviceReading:
        values = {name: _read_field(msg, name) for name in READING_FIELDS}
        return DeviceReading(Timestamp=format_timestamp(self._clock()), **values)

    def transform(self, msg: Any, metadata: Any, msg_type: Any) -> MappedMessage:
        reading = self.build_reading(msg)
        payload = reading.to_payload()

        missing = [name for name in READING_FIELDS if payload[name] is None]
        if missing:
            logger.debug(
                "Device message lacks reading fields",
                extra={"machine_id": reading.machine_id, "missing_fields": missing},
            )
        logger.debug(
            "Mapped device message",
            extra={
                "machine_id": reading.machine_id,
                "msg_type": msg_type,
                "field_count": len(payload),
                "payload": payload if self.log_payloads else None,
            },
        )
        return MappedMessage(msg=payload, metadata=metadata, msgType=msg_type)


@lru_cache
def build_default_mapper() -> PayloadMapper:
    """Factory that wires the mapper from environment settings."""
    settings = get_settings()
    return PayloadMapper(log_payloads=settings.log_payloads)
