"""
Pytest configuration and fixtures for EchoProbe tests.
"""

import asyncio
import json
from typing import Callable, List, Optional

import pytest
from websockets.exceptions import ConnectionClosedError

from echoprobe.core.config import ProbeConfig


_CLOSED = object()


class SteppingClock:
    """Deterministic clock advancing a fixed step on every reading."""

    def __init__(self, start: float = 1000.0, step: float = 1000.0):
        self.step = step
        self._now = start - step

    def now_ms(self) -> float:
        self._now += self.step
        return self._now


class FakeChannel:
    """In-memory channel; `respond` maps each ping dict to a reply frame.

    A reply of None means the responder never answers. After `close_after`
    replies the channel drops as if the peer went away.
    """

    def __init__(self, respond: Callable[[dict], Optional[str]], close_after: Optional[int] = None):
        self.respond = respond
        self.close_after = close_after
        self.sent: List[str] = []
        self.closed = False
        self._replies: asyncio.Queue = asyncio.Queue()

    async def send(self, text: str) -> None:
        if self.closed:
            raise ConnectionClosedError(None, None)
        self.sent.append(text)
        if self.close_after is not None and len(self.sent) > self.close_after:
            self.closed = True
            self._replies.put_nowait(_CLOSED)
            return
        reply = self.respond(json.loads(text))
        if reply is not None:
            self._replies.put_nowait(reply)

    async def recv(self) -> str:
        reply = await self._replies.get()
        if reply is _CLOSED:
            raise ConnectionClosedError(None, None)
        return reply

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._replies.put_nowait(_CLOSED)


def echo_with(offset: float = 500.0, proc: float = 10.0, **overrides) -> Callable[[dict], str]:
    """Responder stamping T2 = T1 + offset and T3 = T2 + proc."""
    def respond(ping: dict) -> str:
        packet = dict(ping)
        packet["t_rx_epoch"] = ping["t_tx_epoch"] + offset
        packet["t_tx2_epoch"] = packet["t_rx_epoch"] + proc
        packet.update(overrides)
        return json.dumps(packet)
    return respond


def channel_factory(*channels: FakeChannel):
    """Connect callable handing out the given channels in order."""
    pending = list(channels)
    urls = []

    async def connect(url: str) -> FakeChannel:
        urls.append(url)
        return pending.pop(0)

    connect.urls = urls
    return connect


@pytest.fixture
def probe_config():
    """Small probe configuration with no inter-sample delay."""
    return ProbeConfig(
        clients=1,
        samples=5,
        url="ws://echo.test/",
        location="weur",
        processing=False,
        inter_sample_delay_ms=0.0,
    )


@pytest.fixture
def clock():
    return SteppingClock()
