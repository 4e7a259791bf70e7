"""
EchoProbe - Skew-corrected WebSocket Latency Probe

Measures end-to-end latency to a remote echo endpoint with an NTP-style
four-timestamp exchange, correcting for clock skew between client and
responder, across several concurrent client sessions.
"""

__version__ = "1.0.0"
__author__ = "EchoProbe Authors"
__license__ = "MIT"

from .core.config import Config, ProbeConfig
from .core.logger import setup_logging
from .core.skew import Sample, derive
from .orchestrator.orchestrator import Orchestrator, RunResult
from .sampler.sampler import Sampler

__all__ = [
    "Config",
    "ProbeConfig",
    "setup_logging",
    "Sample",
    "derive",
    "Orchestrator",
    "RunResult",
    "Sampler",
]
