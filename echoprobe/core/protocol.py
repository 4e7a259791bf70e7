"""
Echo packet wire format for EchoProbe.

A packet travels client -> responder -> client as a JSON text frame. The
timestamps are filled in progressively:

    t_tx_epoch   (T1)  set by the client before sending
    t_rx_epoch   (T2)  set by the responder on receipt
    t_tx2_epoch  (T3)  set by the responder just before replying
    t_rx2_epoch  (T4)  set by the client on receipt, never transmitted back

All timestamps are epoch milliseconds.
"""

import json
import math
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl

from .errors import ProtocolParseError


# Close code sent by a responder that cannot decode a ping
PROTOCOL_ERROR_CLOSE_CODE = 4001

TIMESTAMP_FIELDS = ("t_tx_epoch", "t_rx_epoch", "t_tx2_epoch", "t_rx2_epoch")

# Largest valid epoch in milliseconds
MAX_EPOCH_MS = 8.64e15


class PerfType(str, Enum):
    """Echo mode selected at connection time."""
    ECHOER = "echoer"
    ECHOER_PROCESSING = "echoer-processing"

    @classmethod
    def for_processing(cls, processing: bool) -> 'PerfType':
        return cls.ECHOER_PROCESSING if processing else cls.ECHOER


@dataclass
class EchoPacket:
    """Ping/echo payload."""
    blob: str
    t_tx_epoch: Optional[float] = None
    t_rx_epoch: Optional[float] = None
    t_tx2_epoch: Optional[float] = None
    t_rx2_epoch: Optional[float] = None
    trace: Optional[Dict[str, str]] = field(default=None)

    @classmethod
    def ping(cls, t_tx_epoch: float) -> 'EchoPacket':
        """Create a fresh ping with a random correlation token."""
        return cls(blob=str(uuid.uuid4()), t_tx_epoch=t_tx_epoch)

    def missing_timestamps(self):
        """Names of T1..T4 fields that are still null."""
        return [name for name in TIMESTAMP_FIELDS if getattr(self, name) is None]

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "blob": self.blob,
            "t_tx_epoch": self.t_tx_epoch,
            "t_rx_epoch": self.t_rx_epoch,
            "t_tx2_epoch": self.t_tx2_epoch,
            "t_rx2_epoch": self.t_rx2_epoch,
        }
        if self.trace is not None:
            data["trace"] = self.trace
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def _parse_timestamp(name: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    # bool is an int subclass but never a timestamp
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProtocolParseError(f"{name} must be a number or null (was {type(value).__name__})")
    if not math.isfinite(value) or value < 0 or value > MAX_EPOCH_MS:
        raise ProtocolParseError(f"{name} must be an epoch in milliseconds (was {value})")
    return value


def parse_packet(data: Any) -> EchoPacket:
    """Decode a text frame into an EchoPacket, raising ProtocolParseError."""
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolParseError(f"frame is not UTF-8 ({e})")

    if not isinstance(data, str):
        raise ProtocolParseError(f"frame must be text (was {type(data).__name__})")

    try:
        raw = json.loads(data)
    except json.JSONDecodeError as e:
        raise ProtocolParseError(f"invalid JSON ({e.msg} at position {e.pos})")

    if not isinstance(raw, dict):
        raise ProtocolParseError(f"expected an object (was {type(raw).__name__})")

    blob = raw.get("blob")
    if not isinstance(blob, str):
        raise ProtocolParseError("blob must be a string")

    timestamps = {name: _parse_timestamp(name, raw.get(name)) for name in TIMESTAMP_FIELDS}

    trace = raw.get("trace")
    if trace is not None:
        if not isinstance(trace, dict):
            raise ProtocolParseError("trace must be an object or null")
        trace = {str(key): str(value) for key, value in trace.items() if value is not None}

    return EchoPacket(blob=blob, trace=trace, **timestamps)


def build_session_url(url: str, perf_type: PerfType, location_hint: str) -> str:
    """Append the mode selector and placement hint to the endpoint URL."""
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query = [(key, value) for key, value in query if key not in ("perfType", "locationHint")]
    query.append(("perfType", perf_type.value))
    query.append(("locationHint", location_hint))
    return urlunsplit((parts.scheme, parts.netloc, parts.path or "/", urlencode(query), parts.fragment))
