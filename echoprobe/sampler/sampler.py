"""
Per-client latency sampler for EchoProbe.

A Sampler drives one session against the echo endpoint:

    CONNECTING -> AWAITING_ECHO (repeat) -> COMPLETED | FAILED

Each exchange sends a ping stamped with T1, waits for the echo carrying
T2/T3, stamps T4 and derives one skew-corrected sample. Malformed or
incomplete echoes are discarded without ending the session.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..core.clock import LocalClock
from ..core.config import ProbeConfig
from ..core.errors import (
    IncompleteSampleError,
    PrematureTerminationError,
    ProtocolParseError,
    SessionCancelledError,
    SessionConnectionError,
    SessionError,
)
from ..core.protocol import EchoPacket, PerfType, build_session_url, parse_packet
from ..core.skew import Sample, derive_from_packet
from ..core.statistics import metric_averages


Channel = Any
ChannelFactory = Callable[[str], Awaitable[Channel]]
SampleCallback = Callable[[int, Sample], None]


async def open_channel(url: str) -> Channel:
    """Open a WebSocket channel to the echo endpoint."""
    return await ws_connect(url, compression=None)


class SessionState(Enum):
    """Lifecycle states of a sampling session."""
    CONNECTING = "connecting"
    AWAITING_ECHO = "awaiting_echo"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionResult:
    """Samples collected by one session, in arrival order, with their averages."""
    client_id: int
    samples: Tuple[Sample, ...]
    averages: Dict[str, float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clientId": self.client_id,
            "samples": [sample.to_dict() for sample in self.samples],
            "averages": dict(self.averages),
        }


@dataclass(frozen=True)
class Completed:
    """Terminal outcome of a session that reached its sample target."""
    result: SessionResult
    ok = True

    @property
    def client_id(self) -> int:
        return self.result.client_id


@dataclass(frozen=True)
class Failed:
    """Terminal outcome of a session that ended short of its target."""
    client_id: int
    error: SessionError
    partial_samples: Tuple[Sample, ...] = ()
    ok = False

    @property
    def partial_count(self) -> int:
        return len(self.partial_samples)


SessionOutcome = Union[Completed, Failed]


class Sampler:
    """Runs one skew-corrected latency sampling session."""

    def __init__(
        self,
        config: ProbeConfig,
        client_id: int = 1,
        connect: Optional[ChannelFactory] = None,
        clock: Optional[LocalClock] = None,
        on_sample: Optional[SampleCallback] = None,
    ):
        self.config = config
        self.client_id = client_id
        self.target = config.samples
        self.url = build_session_url(
            config.url,
            PerfType.for_processing(config.processing),
            config.location,
        )
        self.logger = logging.getLogger(__name__)
        self.state = SessionState.CONNECTING

        self._connect = connect or open_channel
        self._clock = clock or LocalClock()
        self._on_sample = on_sample
        self._delay = config.inter_sample_delay_ms / 1000.0

        self._samples: List[Sample] = []
        self._channel: Optional[Channel] = None
        self._closing: Optional[asyncio.Future] = None
        self._stop = asyncio.Event()
        self._done = asyncio.Event()
        self._outcome: Optional[SessionOutcome] = None

    @property
    def _tag(self) -> str:
        return f"[Echoer #{self.client_id}]"

    @property
    def samples(self) -> Tuple[Sample, ...]:
        """Samples collected so far."""
        return tuple(self._samples)

    @property
    def outcome(self) -> Optional[SessionOutcome]:
        return self._outcome

    async def wait(self) -> SessionOutcome:
        """Wait until the session reaches a terminal state."""
        await self._done.wait()
        return self._outcome

    def stop(self) -> None:
        """Request a cooperative stop; closes the channel if it is open.

        Must be called from the event loop running the session.
        """
        self._stop.set()
        if self._channel is not None and self._closing is None:
            self._closing = asyncio.ensure_future(self._channel.close())

    async def run(self) -> SessionOutcome:
        """Run the session to a terminal state and return its outcome.

        If the task running the session is cancelled, the session is
        recorded as cancelled with its partial count before the
        cancellation propagates.
        """
        if self._outcome is not None:
            return self._outcome

        try:
            return await self._run()
        except asyncio.CancelledError:
            if self._outcome is None:
                self._fail(SessionCancelledError(self.client_id, len(self._samples), self.target))
            raise

    async def _run(self) -> SessionOutcome:
        self.state = SessionState.CONNECTING
        try:
            channel = await self._open()
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            return self._fail(SessionConnectionError(self.client_id, self.target, e))

        if channel is None:
            return self._fail(SessionCancelledError(self.client_id, 0, self.target))

        self._channel = channel
        self.state = SessionState.AWAITING_ECHO
        self.logger.info(f"{self._tag} Connected -> {self.url}")

        detail = ""
        try:
            while len(self._samples) < self.target and not self._stop.is_set():
                await self._exchange(channel)
                if len(self._samples) < self.target and self._delay > 0:
                    await asyncio.sleep(self._delay)
        except ConnectionClosed as e:
            detail = str(e)
        finally:
            await self._close_channel()

        collected = len(self._samples)
        if collected >= self.target:
            return self._complete()
        if self._stop.is_set():
            return self._fail(SessionCancelledError(self.client_id, collected, self.target))
        return self._fail(PrematureTerminationError(self.client_id, collected, self.target, detail))

    async def _open(self) -> Optional[Channel]:
        # Races the handshake against stop(); None means stopped first
        connecting = asyncio.ensure_future(self._connect(self.url))
        stopping = asyncio.ensure_future(self._stop.wait())
        try:
            await asyncio.wait({connecting, stopping}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            connecting.cancel()
            raise
        finally:
            stopping.cancel()

        if not connecting.done():
            connecting.cancel()
            return None
        return connecting.result()

    async def _exchange(self, channel: Channel) -> Optional[Sample]:
        ping = EchoPacket.ping(self._clock.now_ms())
        await channel.send(ping.to_json())
        data = await channel.recv()
        return self.handle_echo(data, self._clock.now_ms())

    def handle_echo(self, data: Any, received_at: float) -> Optional[Sample]:
        """Turn an echoed frame into a sample; returns None if it was discarded."""
        try:
            echoed = parse_packet(data)
        except ProtocolParseError as e:
            self.logger.warning(f"{self._tag} Parse error: {e.reason}")
            return None

        echoed.t_rx2_epoch = received_at

        try:
            sample = derive_from_packet(echoed)
        except IncompleteSampleError as e:
            self.logger.warning(f"{self._tag} {e}")
            return None

        self._samples.append(sample)
        self.logger.debug(
            f"{self._tag} Sample {len(self._samples)}/{self.target} - RTT: {sample.rtt:.2f}ms"
        )

        if self._on_sample is not None:
            self._on_sample(self.client_id, sample)
        return sample

    async def _close_channel(self) -> None:
        if self._channel is None:
            return
        if self._closing is None:
            self._closing = asyncio.ensure_future(self._channel.close())
        await self._closing

    def _complete(self) -> SessionOutcome:
        samples = tuple(self._samples)
        result = SessionResult(
            client_id=self.client_id,
            samples=samples,
            averages=metric_averages(samples),
        )
        self.state = SessionState.COMPLETED
        self.logger.info(
            f"{self._tag} Completed {len(samples)} samples - "
            f"avg RTT: {result.averages['rtt']:.2f}ms"
        )
        return self._finish(Completed(result))

    def _fail(self, error: SessionError) -> SessionOutcome:
        self.state = SessionState.FAILED
        self.logger.error(f"{self._tag} {error}")
        return self._finish(Failed(self.client_id, error, tuple(self._samples)))

    def _finish(self, outcome: SessionOutcome) -> SessionOutcome:
        self._outcome = outcome
        self._done.set()
        return outcome
