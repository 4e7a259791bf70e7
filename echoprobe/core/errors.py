"""
Error types for EchoProbe.
"""

from typing import Any, Optional, Sequence


class EchoProbeError(Exception):
    """Base class for all EchoProbe errors."""


class ConfigurationError(EchoProbeError, ValueError):
    """Invalid configuration; raised before any session starts."""


class ProtocolParseError(EchoProbeError, ValueError):
    """An exchanged payload could not be decoded into an echo packet."""

    def __init__(self, reason: str):
        super().__init__(f"Malformed echo packet: {reason}")
        self.reason = reason


class IncompleteSampleError(EchoProbeError):
    """A well-formed packet is missing one or more of T1..T4."""

    def __init__(self, missing: Sequence[str]):
        self.missing = tuple(missing)
        super().__init__(f"Incomplete packet, missing: {', '.join(self.missing)}")


class SessionError(EchoProbeError):
    """A single client session ended without reaching its sample target."""

    def __init__(self, client_id: int, collected: int, target: int, message: str):
        super().__init__(message)
        self.client_id = client_id
        self.collected = collected
        self.target = target

    @property
    def shortfall(self) -> int:
        return self.target - self.collected


class SessionConnectionError(SessionError):
    """The channel to the endpoint could not be established."""

    def __init__(self, client_id: int, target: int, cause: Optional[BaseException] = None):
        super().__init__(
            client_id, 0, target,
            f"Client #{client_id} failed to connect: {cause}"
        )
        self.cause = cause


class PrematureTerminationError(SessionError):
    """The channel closed before the sample quota was reached."""

    def __init__(self, client_id: int, collected: int, target: int, detail: str = ""):
        message = (
            f"Connection closed before collecting all samples "
            f"({collected}/{target})"
        )
        if detail:
            message = f"{message}: {detail}"
        super().__init__(client_id, collected, target, message)


class SessionCancelledError(PrematureTerminationError):
    """The session was stopped by a cooperative stop signal."""

    def __init__(self, client_id: int, collected: int, target: int):
        super().__init__(client_id, collected, target, "stopped")


class RunFailedError(EchoProbeError):
    """One or more sessions failed; carries the partial run result."""

    def __init__(self, result: Any):
        self.result = result
        failures = result.failures
        super().__init__(
            f"{len(failures)} of {len(result.sessions)} sessions failed: "
            + "; ".join(str(f.error) for f in failures)
        )
