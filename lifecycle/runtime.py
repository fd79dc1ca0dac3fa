"""
Lifecycle - Runtime.

============================================================
PURPOSE
============================================================
Builds and owns the long-lived components of a monitor process.

STARTUP:
1. Create tables
2. Connect the gateway
3. Rebuild timers from the database (restart_all)
4. Launch the history sampler and reconciler loops

SHUTDOWN:
1. Signal the shutdown event (stops loops, aborts price polls)
2. Cancel pending timers, wait for running handlers
3. Disconnect the gateway, dispose the engine

============================================================
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from core.clock import ClockFactory, ClockProtocol
from core.config import Settings
from exchange_gateway import ExchangeGateway, MexcGateway
from storage.database import Database
from storage.repositories import SymbolStore

from .reconciliation import Reconciler
from .sampler import HistorySampler
from .scheduler import LifecycleScheduler
from .service import ListingService
from .transitions import TransitionContext


logger = logging.getLogger(__name__)


class ListingRuntime:
    """
    Process-level wiring of store, gateway, scheduler and loops.
    """

    def __init__(
        self,
        settings: Settings,
        gateway: Optional[ExchangeGateway] = None,
        clock: Optional[ClockProtocol] = None,
        database: Optional[Database] = None,
        run_loops: bool = True,
    ):
        """
        Args:
            settings: Process configuration
            gateway: Gateway to use instead of the live MEXC gateway
            clock: Clock to use instead of the process clock
            database: Database to use instead of settings.database
            run_loops: Launch the sampler and reconciler loops on start
        """
        self.settings = settings
        self.clock = clock or ClockFactory.get_clock()
        self.database = database or Database(settings.database)
        self.gateway = gateway or MexcGateway(settings.gateway, settings.price_poll, self.clock)
        self.store = SymbolStore(self.database.session_factory, self.clock)

        self._shutdown_event = asyncio.Event()
        self.context = TransitionContext(
            store=self.store,
            gateway=self.gateway,
            config=settings.lifecycle,
            clock=self.clock,
            quote_order_qty=settings.gateway.quote_order_qty,
            cancel_event=self._shutdown_event,
        )

        self.scheduler = LifecycleScheduler()
        self.service = ListingService(self.context, self.scheduler)
        self.sampler = HistorySampler(self.context)
        self.reconciler = Reconciler(self.context, self.scheduler)

        self._run_loops = run_loops
        self._tasks: List[asyncio.Task] = []
        self._started = False

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutdown_event.is_set()

    async def start(self) -> None:
        if self._started:
            return

        logger.info("Starting listing monitor")
        await self.database.create_tables()
        await self.gateway.connect()
        await self.service.restart_all()

        if self._run_loops:
            self._tasks = [
                asyncio.create_task(self.sampler.run(self._shutdown_event), name="history-sampler"),
                asyncio.create_task(self.reconciler.run(self._shutdown_event), name="reconciler"),
            ]

        self._started = True
        logger.info(f"Listing monitor started ({len(self.scheduler)} timers pending)")

    async def stop(self, timeout: float = 10.0) -> None:
        if not self._started:
            return

        logger.info("Stopping listing monitor")
        self._shutdown_event.set()

        if self._tasks:
            done, pending = await asyncio.wait(self._tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks = []

        await self.scheduler.shutdown(timeout)
        await self.gateway.disconnect()
        await self.database.dispose()

        self._started = False
        logger.info("Listing monitor stopped")

    async def health(self) -> Dict[str, Any]:
        """Runtime status for the health endpoint."""
        last_sample = self.sampler.last_result
        history = self.reconciler.history
        return {
            "status": "running" if self.is_running else "stopped",
            "exchange": self.gateway.exchange_id,
            "database": await self.database.health_check(),
            "pending_timers": len(self.scheduler),
            "running_timers": self.scheduler.running_count,
            "timers": sorted(str(key) for key in self.scheduler.pending_keys()),
            "last_sampling_run": last_sample.run_id if last_sample else None,
            "last_reconciliation_run": history[-1].run_id if history else None,
        }
