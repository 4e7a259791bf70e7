"""
Echo responder for EchoProbe.

Serves the remote side of the four-timestamp exchange over WebSockets:
stamps T2 on receipt, optionally runs processing workloads, stamps T3
and sends the packet back.
"""

import asyncio
import logging
import time
from http import HTTPStatus
from typing import Dict, Optional
from urllib.parse import parse_qs, urlsplit

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from ..core.config import LOCATION_HINTS, ResponderConfig
from ..core.errors import ProtocolParseError
from ..core.protocol import PROTOCOL_ERROR_CLOSE_CODE, PerfType, parse_packet
from .workloads import WorkloadStore, run_workloads


# Close reasons are limited to 123 bytes by the protocol
MAX_CLOSE_REASON = 120


def _now_ms() -> float:
    return time.time_ns() / 1_000_000


def _query_params(path: str) -> Dict[str, str]:
    return {key: values[0] for key, values in parse_qs(urlsplit(path).query).items()}


class EchoResponder:
    """WebSocket echo endpoint for latency sampling."""

    def __init__(self, config: ResponderConfig, trace: Optional[Dict[str, str]] = None):
        self.config = config
        self.trace = trace
        self.logger = logging.getLogger(__name__)
        self.store = WorkloadStore()
        self.echoes = 0

        self._server: Optional[Server] = None

    @property
    def port(self) -> int:
        """Port the server is bound to."""
        if self._server is None:
            return self.config.port
        return self._server.sockets[0].getsockname()[1]

    @property
    def url(self) -> str:
        return f"ws://{self.config.host}:{self.port}/"

    async def start(self) -> None:
        """Start serving."""
        if self._server is not None:
            self.logger.warning("Echo responder already running")
            return

        self._server = await serve(
            self._handle,
            self.config.host,
            self.config.port,
            process_request=self._check_request,
            compression=None,
        )
        self.logger.info(f"Echo responder listening on {self.url}")

    async def stop(self) -> None:
        """Stop serving and close open connections."""
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        self.logger.info("Echo responder stopped")

    async def serve_forever(self) -> None:
        await self.start()
        try:
            await self._server.serve_forever()
        finally:
            await self.stop()

    def _check_request(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        params = _query_params(request.path)

        location = params.get("locationHint")
        if not location:
            self.logger.error("Rejected connection: locationHint is required")
            return connection.respond(HTTPStatus.BAD_REQUEST, "locationHint is required\n")
        if location not in LOCATION_HINTS:
            self.logger.error(f"Rejected connection: invalid locationHint {location!r}")
            return connection.respond(HTTPStatus.BAD_REQUEST, "invalid locationHint\n")

        perf_type = params.get("perfType")
        if not perf_type:
            self.logger.error("Rejected connection: perfType is required")
            return connection.respond(HTTPStatus.BAD_REQUEST, "perfType is required\n")
        if perf_type not in {member.value for member in PerfType}:
            self.logger.error(f"Rejected connection: invalid perfType {perf_type!r}")
            return connection.respond(HTTPStatus.BAD_REQUEST, "invalid perfType\n")

        return None

    async def _handle(self, connection: ServerConnection) -> None:
        perf_type = PerfType(_query_params(connection.request.path)["perfType"])
        peer = connection.remote_address
        self.logger.info(f"Session opened from {peer} ({perf_type.value})")

        try:
            async for data in connection:
                t_rx_epoch = _now_ms()

                try:
                    packet = parse_packet(data)
                except ProtocolParseError as e:
                    self.logger.warning(f"Parse error from {peer}: {e.reason}")
                    await connection.close(PROTOCOL_ERROR_CLOSE_CODE, e.reason[:MAX_CLOSE_REASON])
                    return

                packet.t_rx_epoch = t_rx_epoch

                if perf_type is PerfType.ECHOER_PROCESSING:
                    await asyncio.to_thread(
                        run_workloads, packet.blob, self.config.max_processing_ms, self.store
                    )

                packet.t_tx2_epoch = _now_ms()
                if self.trace is not None:
                    packet.trace = self.trace

                await connection.send(packet.to_json())
                self.echoes += 1
                self.logger.debug(
                    f"Echoed {packet.blob} t_rx_epoch={packet.t_rx_epoch} "
                    f"t_tx2_epoch={packet.t_tx2_epoch}"
                )
        except ConnectionClosed as e:
            self.logger.info(f"Session from {peer} closed: {e}")
