"""
Session orchestration for EchoProbe.

Runs one Sampler per configured client concurrently, waits for every
session to reach a terminal state, and aggregates the pooled samples.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..core.clock import LocalClock
from ..core.config import ProbeConfig
from ..core.errors import RunFailedError
from ..core.skew import Sample
from ..core.statistics import AggregateStats, aggregate
from ..sampler.sampler import (
    ChannelFactory,
    Completed,
    Failed,
    Sampler,
    SessionOutcome,
    SessionResult,
)


ProgressCallback = Callable[[int, int, int], None]


@dataclass(frozen=True)
class RunResult:
    """Outcomes of every session plus statistics over the successful ones."""
    sessions: List[SessionOutcome]
    aggregate: Optional[AggregateStats]

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.sessions)

    @property
    def results(self) -> List[SessionResult]:
        return [outcome.result for outcome in self.sessions if isinstance(outcome, Completed)]

    @property
    def failures(self) -> List[Failed]:
        return [outcome for outcome in self.sessions if isinstance(outcome, Failed)]

    @property
    def samples(self) -> List[Sample]:
        """All samples from completed sessions, in session order."""
        return [sample for result in self.results for sample in result.samples]


class Orchestrator:
    """Runs and aggregates concurrent sampling sessions."""

    def __init__(
        self,
        config: ProbeConfig,
        connect: Optional[ChannelFactory] = None,
        clock: Optional[LocalClock] = None,
        progress: Optional[ProgressCallback] = None,
    ):
        config.validate()
        self.config = config
        self.logger = logging.getLogger(__name__)
        self._progress = progress
        self._collected = 0

        # Client ids are labels only, numbered by creation order
        self.samplers = [
            Sampler(
                config,
                client_id=client_id,
                connect=connect,
                clock=clock,
                on_sample=self._on_sample,
            )
            for client_id in range(1, config.clients + 1)
        ]

    @property
    def collected(self) -> int:
        """Samples accepted so far across all sessions."""
        return self._collected

    @property
    def target(self) -> int:
        return self.config.total_samples

    def _on_sample(self, client_id: int, sample: Sample) -> None:
        self._collected += 1
        if self._progress is not None:
            self._progress(client_id, self._collected, self.target)

    def stop(self) -> None:
        """Stop every outstanding session; each reports its partial count."""
        self.logger.info("Stopping all sessions")
        for sampler in self.samplers:
            sampler.stop()

    async def run(self) -> RunResult:
        """Run all sessions concurrently.

        Raises RunFailedError, carrying the partial RunResult, if any
        session failed.
        """
        self.logger.info(
            f"Starting {self.config.clients} client(s) x {self.config.samples} samples "
            f"-> {self.config.url} ({self.config.location}, "
            f"processing={'on' if self.config.processing else 'off'})"
        )

        try:
            outcomes = await asyncio.gather(*(sampler.run() for sampler in self.samplers))
        except BaseException:
            self.stop()
            raise

        result = self._collect(list(outcomes))

        if not result.ok:
            self.logger.error(f"{len(result.failures)} of {len(result.sessions)} sessions failed")
            raise RunFailedError(result)

        self.logger.info(f"All sessions completed: {result.aggregate.total_samples} samples")
        return result

    def _collect(self, outcomes: List[SessionOutcome]) -> RunResult:
        pool = [
            sample
            for outcome in outcomes
            if isinstance(outcome, Completed)
            for sample in outcome.result.samples
        ]
        stats = aggregate(pool) if pool else None
        return RunResult(sessions=outcomes, aggregate=stats)
