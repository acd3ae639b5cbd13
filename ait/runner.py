"""Bounded-concurrency benchmark runner.

``count`` requests are spread over ``min(concurrency, count)`` worker tasks.
Workers hand every outcome to a single collector coroutine, which is the only
writer of ``StatsData`` and the only caller of the progress callback.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
import logging
import os
import time
from typing import Callable, NamedTuple

from ait.aggregator import calculate_result
from ait.config import BenchmarkConfig
from ait.logging_config import close_request_logger, create_request_logger
from ait.metrics import ResponseMetrics, StatsData
from ait.model_client import ModelClient, ModelClientError, create_client
from ait.schemas import ReportData

ProgressCallback = Callable[[StatsData], None]

logger = logging.getLogger(__name__)


def new_run_id() -> str:
    """Return a time-ordered random identifier (millisecond prefix + entropy)."""
    return f"{int(time.time() * 1000):012x}{os.urandom(10).hex()}"


class _Outcome(NamedTuple):
    index: int
    metrics: ResponseMetrics | None
    error: str


class Runner:
    """Drive one benchmark run against one model."""

    def __init__(
        self,
        config: BenchmarkConfig,
        client: ModelClient | None = None,
        run_id: str | None = None,
    ) -> None:
        config.validate()
        self._config = config
        self.run_id = run_id or new_run_id()
        self._request_logger = None
        if client is None:
            self._request_logger = create_request_logger(config.log)
            client = create_client(
                config, request_logger=self._request_logger, run_id=self.run_id
            )
        self._client = client

    @property
    def config(self) -> BenchmarkConfig:
        return self._config

    @property
    def client(self) -> ModelClient:
        return self._client

    async def run(self) -> ReportData:
        """Execute the run without progress reporting."""
        return await self.run_with_progress(None)

    async def run_with_progress(self, callback: ProgressCallback | None) -> ReportData:
        """Execute the run, passing a StatsData snapshot to ``callback``
        after every finished request."""
        config = self._config
        outcomes: list[ResponseMetrics | None] = [None] * config.count
        stats = StatsData()

        pending: asyncio.Queue[int] = asyncio.Queue()
        for index in range(config.count):
            pending.put_nowait(index)
        finished: asyncio.Queue[_Outcome | None] = asyncio.Queue()

        worker_count = min(config.concurrency, config.count)
        logger.info(
            "Starting run %s: model=%s protocol=%s count=%d concurrency=%d stream=%s",
            self.run_id,
            config.model,
            config.protocol,
            config.count,
            worker_count,
            config.stream,
        )

        timestamp = datetime.now().isoformat(timespec="seconds")
        started = time.perf_counter()
        collector = asyncio.create_task(
            self._collect(finished, outcomes, stats, started, callback)
        )
        workers = [
            asyncio.create_task(self._worker(pending, finished))
            for _ in range(worker_count)
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            await finished.put(None)
            await collector
        total_time_ms = (time.perf_counter() - started) * 1000

        logger.info(
            "Run %s finished in %.1f ms: %d completed, %d failed",
            self.run_id,
            total_time_ms,
            stats.completed_count,
            stats.failed_count,
        )
        return calculate_result(outcomes, total_time_ms, config, timestamp=timestamp)

    async def _worker(
        self, pending: asyncio.Queue[int], finished: asyncio.Queue[_Outcome | None]
    ) -> None:
        while True:
            try:
                index = pending.get_nowait()
            except asyncio.QueueEmpty:
                return
            await finished.put(await self._execute(index))

    async def _execute(self, index: int) -> _Outcome:
        try:
            prompt = self._config.prompt_source.get_content_by_index(index)
            metrics = await self._client.request(prompt, self._config.stream)
        except ModelClientError as exc:
            return _Outcome(index, exc.metrics, str(exc))
        except Exception as exc:
            logger.exception("Request %d raised an unexpected error", index)
            return _Outcome(index, None, f"Unexpected error: {exc}")
        return _Outcome(index, metrics, "")

    async def _collect(
        self,
        finished: asyncio.Queue[_Outcome | None],
        outcomes: list[ResponseMetrics | None],
        stats: StatsData,
        started: float,
        callback: ProgressCallback | None,
    ) -> None:
        while True:
            outcome = await finished.get()
            if outcome is None:
                return
            outcomes[outcome.index] = outcome.metrics
            stats.record(outcome.metrics, outcome.error)
            stats.elapsed_time_ms = (time.perf_counter() - started) * 1000
            if callback is not None:
                callback(stats.snapshot())

    async def aclose(self) -> None:
        """Release the HTTP client and the request log file."""
        await self._client.aclose()
        close_request_logger(self._request_logger)

    async def __aenter__(self) -> "Runner":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
