"""
Lifecycle - History Sampler.

============================================================
PURPOSE
============================================================
Hourly price history for listed symbols.

Each pass samples every listed, unfinished symbol once. A symbol
is finished when its history reaches the sample threshold and is
not sampled again.

Passes are aligned to interval boundaries of the wall clock
(top of the hour with the default interval).

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .transitions import OutcomeKind, TransitionContext, TransitionOutcome, record_sample


logger = logging.getLogger(__name__)


@dataclass
class SamplingResult:
    """Result of one sampling pass."""

    run_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    outcomes: List[TransitionOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def sampled(self) -> int:
        return sum(1 for o in self.outcomes if o.kind in (OutcomeKind.SAMPLED, OutcomeKind.FINISHED))

    @property
    def finished(self) -> List[str]:
        return [o.symbol_name for o in self.outcomes if o.kind is OutcomeKind.FINISHED]

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.kind is OutcomeKind.POLL_FAILED) + len(self.errors)


class HistorySampler:
    """
    Periodic history sampling of active symbols.
    """

    def __init__(self, ctx: TransitionContext):
        self._ctx = ctx
        self._lock = asyncio.Lock()
        self._run_counter = 0
        self._last_result: Optional[SamplingResult] = None

    @property
    def last_result(self) -> Optional[SamplingResult]:
        return self._last_result

    async def run_once(self) -> SamplingResult:
        """Sample every listed, unfinished symbol once."""
        async with self._lock:
            self._run_counter += 1
            result = SamplingResult(
                run_id=f"SMP_{self._run_counter:06d}",
                started_at=self._ctx.clock.now(),
            )

            symbols = await self._ctx.store.find_active_symbols()
            for symbol in symbols:
                try:
                    result.outcomes.append(await record_sample(self._ctx, symbol))
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    result.errors.append(f"{symbol.name}: {e}")
                    logger.error(f"History sample for {symbol.name} failed: {e}")

            result.completed_at = self._ctx.clock.now()
            self._last_result = result

            logger.info(
                f"Sampling {result.run_id} complete: "
                f"{result.sampled}/{len(symbols)} sampled, "
                f"{len(result.finished)} finished, "
                f"{result.failed} failed"
            )
            return result

    async def run(self, stop_event: asyncio.Event) -> None:
        """Sample at every interval boundary until stop_event is set."""
        interval = self._ctx.config.sample_interval_seconds
        logger.info(f"History sampler started (interval={interval}s)")

        while not stop_event.is_set():
            wait = self._ctx.clock.time_until_next_boundary(interval).total_seconds()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=max(wait, 0.0))
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Sampling pass failed: {e}")

        logger.info("History sampler stopped")
