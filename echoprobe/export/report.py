"""
Terminal rendering of EchoProbe run results.
"""

from typing import Dict, Optional

import click

from ..core.config import ProbeConfig
from ..core.skew import METRICS
from ..orchestrator.orchestrator import RunResult


LABELS = {
    "rtt": "RTT (δ)",
    "proc": "Processing",
    "uplink": "Uplink",
    "downlink": "Downlink",
    "offset": "Offset (θ)",
}


def render_results(
    result: RunResult,
    config: ProbeConfig,
    client_trace: Optional[Dict[str, str]] = None,
) -> None:
    """Print configuration, per-client averages and aggregate statistics."""
    click.secho("\nEchoProbe results", bold=True)
    click.echo(
        f"  endpoint: {config.url}  location: {config.location}  "
        f"processing: {'on' if config.processing else 'off'}"
    )
    if client_trace:
        click.echo(
            f"  client: {client_trace.get('ip', '?')} via {client_trace.get('colo', '?')} "
            f"({client_trace.get('loc', '?')})"
        )

    click.secho("\nPer-client averages (ms)", bold=True)
    click.echo("  " + "client".ljust(8) + "".join(LABELS[name].rjust(13) for name in METRICS))
    for session in result.results:
        click.echo(
            "  " + f"#{session.client_id}".ljust(8)
            + "".join(f"{session.averages[name]:13.2f}" for name in METRICS)
        )

    for failure in result.failures:
        click.secho(
            f"  #{failure.client_id} failed: {failure.error} "
            f"(collected {failure.partial_count}, short by {failure.error.shortfall})",
            fg="red",
        )

    if result.aggregate is None:
        click.secho("\nNo samples collected", fg="yellow")
        return

    click.secho(f"\nAggregate over {result.aggregate.total_samples} samples (ms)", bold=True)
    click.echo("  " + "metric".ljust(12) + "".join(col.rjust(10) for col in ("mean", "min", "max", "stddev")))
    for name in METRICS:
        stats = result.aggregate.metric(name)
        click.echo(
            "  " + LABELS[name].ljust(12)
            + f"{stats.mean:10.2f}{stats.min:10.2f}{stats.max:10.2f}{stats.stddev:10.2f}"
        )
