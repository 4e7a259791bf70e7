"""
Skew correction for EchoProbe.

Applies the NTP clock-offset/delay estimator to a single round trip and
splits it into skew-corrected one-way legs.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Optional

from .errors import IncompleteSampleError
from .protocol import EchoPacket


METRICS = ("rtt", "proc", "uplink", "downlink", "offset")


@dataclass(frozen=True)
class Sample:
    """One derived latency sample, all values in milliseconds."""
    rtt: float
    proc: float
    uplink: float
    downlink: float
    offset: float
    colo: Optional[str] = None

    def metrics(self) -> Dict[str, float]:
        """Metric values keyed by name, without labels."""
        return {name: getattr(self, name) for name in METRICS}

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def derive(t1: float, t2: float, t3: float, t4: float, colo: Optional[str] = None) -> Sample:
    """Derive a sample from client send (T1), responder receive (T2),
    responder send (T3) and client receive (T4) timestamps.

    RTT is not clamped: pathological clock drift can make it negative.
    """
    proc = t3 - t2

    theta = ((t2 - t1) + (t3 - t4)) / 2  # offset
    delta = (t4 - t1) - (t3 - t2)        # RTT without responder processing

    uplink = (t2 - t1) - theta
    downlink = (t4 - t3) + theta

    return Sample(
        rtt=float(delta),
        proc=float(proc),
        uplink=float(uplink),
        downlink=float(downlink),
        offset=float(theta),
        colo=colo,
    )


def derive_from_packet(packet: EchoPacket) -> Sample:
    """Derive a sample from a fully stamped packet."""
    missing = packet.missing_timestamps()
    if missing:
        raise IncompleteSampleError(missing)

    colo = packet.trace.get("colo") if packet.trace else None
    return derive(
        packet.t_tx_epoch,
        packet.t_rx_epoch,
        packet.t_tx2_epoch,
        packet.t_rx2_epoch,
        colo=colo,
    )
