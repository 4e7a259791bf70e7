"""
JSON export of EchoProbe run results.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.config import ProbeConfig
from ..orchestrator.orchestrator import RunResult


logger = logging.getLogger(__name__)


def build_report(
    result: RunResult,
    config: ProbeConfig,
    client_trace: Optional[Dict[str, str]] = None,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Build the JSON document for a run."""
    timestamp = timestamp or datetime.now(timezone.utc)
    observed_colos = sorted({sample.colo for sample in result.samples if sample.colo})

    return {
        "timestamp": timestamp.isoformat(),
        "configuration": {
            "clients": config.clients,
            "samples": config.samples,
            "url": config.url,
            "location": config.location,
            "processing": config.processing,
        },
        "clients": [session.to_dict() for session in result.results],
        "failures": [
            {
                "clientId": failure.client_id,
                "error": str(failure.error),
                "collected": failure.error.collected,
                "target": failure.error.target,
            }
            for failure in result.failures
        ],
        "aggregated": result.aggregate.to_dict() if result.aggregate else None,
        "metadata": {
            "clientTrace": client_trace,
            "observedColos": observed_colos,
        },
    }


def save_results(
    result: RunResult,
    config: ProbeConfig,
    results_dir: Path,
    client_trace: Optional[Dict[str, str]] = None,
) -> Path:
    """Write the run report to a timestamped file and return its path."""
    timestamp = datetime.now(timezone.utc)
    report = build_report(result, config, client_trace, timestamp)

    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)

    filename = results_dir / f"results-{timestamp.strftime('%Y-%m-%dT%H-%M-%S')}.json"
    with open(filename, 'w') as f:
        json.dump(report, f, indent=2)

    logger.info(f"Results saved to {filename}")
    return filename
