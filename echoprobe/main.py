#!/usr/bin/env python3
"""
EchoProbe - Skew-corrected WebSocket Latency Probe
Command-line entry point for the probe and responder roles.
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Optional

import click

from echoprobe.core.config import Config, LOCATION_HINTS
from echoprobe.core.errors import ConfigurationError, RunFailedError
from echoprobe.core.logger import setup_logging
from echoprobe.export.cgi_trace import fetch_trace
from echoprobe.export.json_exporter import save_results
from echoprobe.export.report import render_results
from echoprobe.orchestrator.orchestrator import Orchestrator, RunResult
from echoprobe.responder.echo_responder import EchoResponder


@click.command()
@click.option('--role', type=click.Choice(['probe', 'responder']),
              default='probe', show_default=True, help='Role to run')
@click.option('--config', '-C', 'config_file', default=None,
              help='Configuration file path (TOML)')
@click.option('--clients', '-c', type=int, default=None,
              help='Number of parallel clients (max 5)')
@click.option('--samples', '-s', type=int, default=None,
              help='Number of samples per client')
@click.option('--url', '-u', default=None,
              help='WebSocket URL, or preset "deployed" / "local"')
@click.option('--location', '-l', type=click.Choice(LOCATION_HINTS), default=None,
              help='Location hint for the responder placement')
@click.option('--processing/--no-processing', '-p', default=None,
              help='Enable or disable processing mode on the responder '
                   '(default: from the configuration file, else off)')
@click.option('--host', default=None, help='Responder bind address')
@click.option('--port', type=int, default=None, help='Responder port')
@click.option('--no-export', is_flag=True, help='Do not write a JSON results file')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def main(role: str, config_file: Optional[str], clients: Optional[int],
         samples: Optional[int], url: Optional[str], location: Optional[str],
         processing: Optional[bool], host: Optional[str], port: Optional[int],
         no_export: bool, verbose: bool):
    """EchoProbe - skew-corrected WebSocket latency probe"""
    try:
        cfg = load_config(
            config_file,
            clients=clients,
            samples=samples,
            url=url,
            location=location,
            processing=processing,
            host=host,
            port=port,
            no_export=no_export,
        )
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    log_level = logging.DEBUG if verbose else getattr(logging, cfg.logging.level.upper(), logging.INFO)
    setup_logging(cfg.logging, log_level)

    try:
        if role == 'probe':
            sys.exit(run_probe(cfg))
        elif role == 'responder':
            run_responder(cfg)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        if verbose:
            logging.exception("Full traceback:")
        sys.exit(1)


def load_config(config_file: Optional[str] = None, host: Optional[str] = None,
                port: Optional[int] = None, no_export: bool = False,
                **probe_overrides: Optional[Any]) -> Config:
    """Load the configuration file (if any) and apply command-line overrides.

    Overrides left as None keep the file's value, so ``processing=False``
    can switch off processing mode enabled in the file.
    """
    if config_file:
        config_path = Path(config_file)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file {config_file} not found")
        cfg = Config.from_file(config_path)
    else:
        cfg = Config()

    cfg = cfg.with_overrides(**probe_overrides)
    if host is not None:
        cfg.responder.host = host
    if port is not None:
        cfg.responder.port = port
    if no_export:
        cfg.export.enabled = False
    cfg.validate()
    return cfg


def run_probe(config: Config) -> int:
    """Run the latency probe role; returns the process exit status."""
    client_trace = fetch_trace(config.export.trace_url) if config.export.enabled else None

    try:
        result = asyncio.run(_probe(config))
        status = 0
    except RunFailedError as e:
        result = e.result
        status = 1

    render_results(result, config.probe, client_trace)

    if config.export.enabled and result.results:
        filename = save_results(result, config.probe, Path(config.export.results_dir), client_trace)
        click.echo(f"\nResults saved to {filename}")

    return status


async def _probe(config: Config) -> RunResult:
    total = config.probe.total_samples
    with click.progressbar(length=total, label='Sampling', file=sys.stderr) as bar:
        orchestrator = Orchestrator(
            config.probe,
            progress=lambda client_id, collected, target: bar.update(1),
        )
        _install_stop_handlers(orchestrator.stop)
        return await orchestrator.run()


def run_responder(config: Config) -> None:
    """Run the echo responder role until interrupted."""
    logging.info("Starting echo responder...")
    asyncio.run(_respond(config))
    logging.info("Echo responder stopped")


async def _respond(config: Config) -> None:
    responder = EchoResponder(config.responder)
    serving = asyncio.ensure_future(responder.serve_forever())
    _install_stop_handlers(serving.cancel)
    try:
        await serving
    except asyncio.CancelledError:
        pass


def _install_stop_handlers(callback) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, callback)
        except NotImplementedError:
            # Signal handlers are unavailable on this platform's event loop
            pass


if __name__ == '__main__':
    main()
