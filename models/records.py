"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

READING_FIELDS = ("machine_id", "total_Count", "batch", "Flavor")
TIMESTAMP_FIELD = "Timestamp"


@dataclass(frozen=True, slots=True)
class DeviceReading:
    """One measurement event reported by a machine, stamped on arrival.

    The four device fields are opaque and copied as-is; ``None`` stands in for a
    field the device did not send.
    """

    machine_id: Any
    total_Count: Any
    batch: Any
    Flavor: Any
    Timestamp: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "machine_id": self.machine_id,
            "total_Count": self.total_Count,
            "batch": self.batch,
            "Flavor": self.Flavor,
            TIMESTAMP_FIELD: self.Timestamp,
        }


@dataclass(frozen=True, slots=True)
class MappedMessage:
    """Output envelope handed to the next stage."""

    msg: Dict[str, Any]
    metadata: Any
    msgType: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"msg": self.msg, "metadata": self.metadata, "msgType": self.msgType}
