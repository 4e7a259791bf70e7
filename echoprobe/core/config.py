"""
Configuration management for EchoProbe.
"""

import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import toml

from .errors import ConfigurationError


DEPLOYED_URL = "wss://doperf.cloudflare-c49.workers.dev/"
LOCAL_URL = "ws://localhost:8787/"
URL_PRESETS = {
    "deployed": DEPLOYED_URL,
    "local": LOCAL_URL,
}

# Placement hints understood by the responder's deployment layer
LOCATION_HINTS = ("wnam", "enam", "sam", "weur", "eeur", "apac", "oc", "afr", "me")

MAX_CLIENTS = 5
MAX_SAMPLES = 10000

# Tuned by observation: larger gaps add ~1 ms of RTT jitter
DEFAULT_INTER_SAMPLE_DELAY_MS = 10.0


def resolve_url(url: str) -> str:
    """Expand a URL preset name into its endpoint address."""
    return URL_PRESETS.get(url, url)


@dataclass(frozen=True)
class ProbeConfig:
    """Latency probe run settings."""
    clients: int = 1
    samples: int = 100
    url: str = DEPLOYED_URL
    location: str = "me"
    processing: bool = False
    inter_sample_delay_ms: float = DEFAULT_INTER_SAMPLE_DELAY_MS

    def validate(self) -> None:
        """Validate probe settings."""
        if isinstance(self.clients, bool) or not isinstance(self.clients, int):
            raise ConfigurationError(f"Client count must be an integer, got {self.clients!r}")
        if not 1 <= self.clients <= MAX_CLIENTS:
            raise ConfigurationError(
                f"Client count must be between 1 and {MAX_CLIENTS}, got {self.clients}"
            )

        if isinstance(self.samples, bool) or not isinstance(self.samples, int):
            raise ConfigurationError(f"Sample count must be an integer, got {self.samples!r}")
        if not 1 <= self.samples <= MAX_SAMPLES:
            raise ConfigurationError(
                f"Sample count must be between 1 and {MAX_SAMPLES}, got {self.samples}"
            )

        parsed = urlparse(self.url) if isinstance(self.url, str) else None
        if parsed is None or parsed.scheme not in ("ws", "wss") or not parsed.netloc:
            raise ConfigurationError(f"Endpoint must be a ws:// or wss:// URL, got {self.url!r}")

        if self.location not in LOCATION_HINTS:
            raise ConfigurationError(
                f"Unknown location hint {self.location!r}; "
                f"expected one of {', '.join(LOCATION_HINTS)}"
            )

        delay = self.inter_sample_delay_ms
        if isinstance(delay, bool) or not isinstance(delay, (int, float)):
            raise ConfigurationError(f"Inter-sample delay must be a number, got {delay!r}")
        if not math.isfinite(delay) or delay < 0:
            raise ConfigurationError(
                f"Inter-sample delay must be a finite, non-negative number of ms, got {delay}"
            )

    @property
    def total_samples(self) -> int:
        return self.clients * self.samples


@dataclass
class LoggingConfig:
    """Logging configuration settings."""
    level: str = "INFO"
    file: str = ""
    max_size: int = 10
    backup_count: int = 3


@dataclass
class ExportConfig:
    """Result export settings."""
    enabled: bool = True
    results_dir: str = "./results"
    trace_url: str = "https://www.cloudflare.com/cdn-cgi/trace"


@dataclass
class ResponderConfig:
    """Echo responder settings."""
    host: str = "127.0.0.1"
    port: int = 8787
    max_processing_ms: float = 95.0


@dataclass
class Config:
    """Main configuration class."""
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    responder: ResponderConfig = field(default_factory=ResponderConfig)

    @classmethod
    def from_file(cls, config_path: Path) -> 'Config':
        """Load configuration from TOML file."""
        try:
            config_data = toml.load(config_path)
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigurationError(f"Failed to load configuration: {e}")
        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any]) -> 'Config':
        """Build configuration from parsed TOML data; missing sections use defaults."""
        try:
            probe_data = dict(config_data.get('probe', {}))
            if 'url' in probe_data:
                probe_data['url'] = resolve_url(probe_data['url'])

            return cls(
                probe=ProbeConfig(**probe_data),
                logging=LoggingConfig(**config_data.get('logging', {})),
                export=ExportConfig(**config_data.get('export', {})),
                responder=ResponderConfig(**config_data.get('responder', {})),
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration key: {e}")

    def with_overrides(self, **overrides: Optional[Any]) -> 'Config':
        """Return a copy with probe settings overridden; None values are ignored."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        if 'url' in changes:
            changes['url'] = resolve_url(changes['url'])
        try:
            probe = replace(self.probe, **changes)
        except TypeError as e:
            raise ConfigurationError(f"Unknown probe setting: {e}")
        return replace(self, probe=probe)

    def validate(self) -> bool:
        """Validate configuration values."""
        self.probe.validate()

        if self.logging.max_size <= 0:
            raise ConfigurationError("Log file max_size must be positive")

        if self.logging.backup_count < 0:
            raise ConfigurationError("Log backup_count must not be negative")

        if not 0 <= self.responder.port <= 65535:
            raise ConfigurationError("Responder port must be between 0 and 65535")

        if self.responder.max_processing_ms < 0:
            raise ConfigurationError("Responder max_processing_ms must not be negative")

        return True
