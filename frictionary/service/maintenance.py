"""Periodic pruning of outdated suggestions."""

import asyncio

import structlog

from frictionary.config.constants import COMPONENT_SERVICE
from frictionary.service.orchestrator import SuggestionService


logger = structlog.get_logger()


class PruneScheduler:
    """Runs ``SuggestionService.prune_outdated`` on a fixed interval.

    The first run happens immediately. A failed run is logged and the
    schedule continues.
    """

    def __init__(self, service: SuggestionService, interval_seconds: float) -> None:
        """Initialize the scheduler.

        Args:
            service: Service to prune.
            interval_seconds: Delay between runs.

        Raises:
            ValueError: If the interval is not positive.
        """
        if interval_seconds <= 0:
            msg = "Prune interval must be positive"
            raise ValueError(msg)
        self._service = service
        self._interval_seconds = interval_seconds
        self._stopped = asyncio.Event()
        self._runs = 0
        self._log = logger.bind(component=COMPONENT_SERVICE, task="prune")

    @property
    def runs(self) -> int:
        """Number of completed or failed runs so far."""
        return self._runs

    async def run_once(self) -> int | None:
        """Prune once.

        Returns:
            Number of pruned suggestions, or None if the run failed.
        """
        self._runs += 1
        try:
            return await self._service.prune_outdated()
        except Exception:  # noqa: BLE001
            self._log.exception("prune_failed", run=self._runs)
            return None

    async def run(self, max_runs: int | None = None) -> None:
        """Prune now and then every interval until stopped.

        Args:
            max_runs: Stop after this many runs (default: run until stop()).
        """
        self._log.info("prune_scheduler_started", interval_seconds=self._interval_seconds)
        while not self._stopped.is_set():
            await self.run_once()
            if max_runs is not None and self._runs >= max_runs:
                break
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self._interval_seconds)
            except TimeoutError:
                continue
        self._log.info("prune_scheduler_stopped", runs=self._runs)

    def stop(self) -> None:
        """Ask a running scheduler to stop after the current run."""
        self._stopped.set()
