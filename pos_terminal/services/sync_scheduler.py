# services/sync_scheduler.py
import asyncio
import logging
from typing import List, Optional, Tuple

from pos_terminal.config.config import SYNC_BACKOFF_BASE, SYNC_BACKOFF_FACTOR, SYNC_BACKOFF_MAX
from pos_terminal.models.errors import StoreIOError
from pos_terminal.models.models import PushOutcome, PushResult, ReconciliationResult, SyncStatus
from pos_terminal.services.archival import archive_if_confirmed
from pos_terminal.storage.catalog_storage import ProductCatalog
from pos_terminal.storage.orders_storage import OrderStore
from pos_terminal.storage.sync_queue_storage import SYNC_ORDERS_TAG, DeferredSyncQueue

logger = logging.getLogger(__name__)


class Backoff:
    """Exponential delay between failed runs; reset after a success."""

    def __init__(self, base: float = SYNC_BACKOFF_BASE, factor: float = SYNC_BACKOFF_FACTOR,
                 maximum: float = SYNC_BACKOFF_MAX):
        self.base = base
        self.factor = factor
        self.maximum = maximum
        self.failures = 0

    def next_delay(self) -> float:
        self.failures += 1
        return min(self.base * self.factor ** (self.failures - 1), self.maximum)

    def reset(self) -> None:
        self.failures = 0


class SyncScheduler:
    """
    Decides when reconciliation runs and retries failed runs with backoff.

    Triggers are `request_sync()` after a local mutation,
    `on_connectivity_regained()` and the manual `sync_now()`. While the
    background loop is started they only wake it; otherwise the
    reconciliation runs inline in the caller.
    """

    def __init__(self, store: OrderStore, client, catalog: ProductCatalog,
                 queue: Optional[DeferredSyncQueue] = None, backoff: Optional[Backoff] = None):
        self._store = store
        self._client = client
        self._catalog = catalog
        self._queue = queue
        self._backoff = backoff or Backoff()
        self._run_lock = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self._waiters: List[asyncio.Future] = []
        self._task: Optional[asyncio.Task] = None
        self.last_result: Optional[ReconciliationResult] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def backoff(self) -> Backoff:
        return self._backoff

    async def run_reconciliation(self) -> ReconciliationResult:
        """Pushes every active order concurrently and archives confirmed closed ones."""
        async with self._run_lock:
            orders = await self._store.list_active_orders()
            if not orders:
                logger.info("No active orders to sync")
                return ReconciliationResult(SyncStatus.SUCCESS)

            logger.info(f"Syncing {len(orders)} orders: seats {[o.seat_no for o in orders]}")
            outcomes = await asyncio.gather(
                *(self._client.push_order(order) for order in orders),
                return_exceptions=True,
            )

            result = ReconciliationResult(SyncStatus.SUCCESS)
            for order, outcome in zip(orders, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"Unexpected error pushing seat {order.seat_no}", exc_info=outcome)
                    outcome = PushResult(order.seat_no, PushOutcome.NETWORK_FAILURE, error=repr(outcome))
                if not outcome.ok:
                    result.failed[order.seat_no] = outcome
                    continue

                result.succeeded.append(order.seat_no)
                if not order.closed:
                    continue
                try:
                    bill = await archive_if_confirmed(self._store, self._catalog, order, outcome)
                except StoreIOError as e:
                    logger.error(f"Seat {order.seat_no} confirmed but could not be archived: {e}")
                    result.archive_errors[order.seat_no] = str(e)
                    continue
                if bill is not None:
                    result.archived.append(order.seat_no)

            if result.failed or result.archive_errors:
                result.status = SyncStatus.RETRYABLE_FAILURE
                for seat, failure in result.failed.items():
                    logger.warning(f"  - seat {seat}: {failure.outcome.value} {failure.error or ''}".rstrip())
            logger.info(
                f"Sync finished: {result.status.value}, succeeded={result.succeeded}, "
                f"failed={sorted(result.failed)}, archived={result.archived}"
            )
            return result

    async def run_once(self) -> Tuple[ReconciliationResult, Optional[float]]:
        """One scheduled cycle. Returns the result and the delay before the retry, or None on success."""
        result = await self.run_reconciliation()
        self.last_result = result
        if result.ok:
            self._backoff.reset()
            if self._queue is not None:
                await self._queue.complete(SYNC_ORDERS_TAG)
            return result, None
        delay = self._backoff.next_delay()
        logger.warning(f"Sync attempt {self._backoff.failures} failed, retrying in {delay:.1f}s")
        return result, delay

    async def request_sync(self) -> Optional[ReconciliationResult]:
        """Called right after a local mutation."""
        if self._queue is not None:
            try:
                await self._queue.register(SYNC_ORDERS_TAG)
            except StoreIOError as e:
                # The sync still runs now, it just won't survive a restart
                logger.error(f"Could not persist sync request: {e}")
        if self.is_running:
            self._wakeup.set()
            return None
        logger.info("Deferred sync not running, syncing immediately")
        result, _ = await self.run_once()
        return result

    async def on_connectivity_regained(self) -> None:
        logger.info("Connectivity regained, scheduling sync")
        if self.is_running:
            self._wakeup.set()
        else:
            await self.run_once()

    async def sync_now(self) -> ReconciliationResult:
        """Manual trigger; waits for the run it causes and returns its result."""
        if not self.is_running:
            result, _ = await self.run_once()
            return result
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        self._wakeup.set()
        return await waiter

    async def start(self) -> None:
        if self.is_running:
            return
        pending = await self._queue.load() if self._queue is not None else []
        self._task = asyncio.create_task(self._loop())
        if pending:
            self._wakeup.set()
        logger.info("Sync scheduler started")

    async def stop(self) -> None:
        if self._task is None:
            return
        # Let a run in progress finish before the loop is cancelled
        async with self._run_lock:
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        for waiter in self._waiters:
            waiter.cancel()
        self._waiters = []
        logger.info("Sync scheduler stopped")

    async def _loop(self) -> None:
        delay: Optional[float] = None
        while True:
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
            self._wakeup.clear()
            waiters, self._waiters = self._waiters, []
            try:
                result, delay = await self.run_once()
            except StoreIOError as e:
                logger.error(f"Sync aborted, local store failure: {e}")
                delay = None
                _fail_waiters(waiters, e)
                continue
            except Exception as e:
                logger.exception("Unexpected error in sync loop")
                delay = self._backoff.next_delay()
                _fail_waiters(waiters, e)
                continue
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_result(result)


def _fail_waiters(waiters: List[asyncio.Future], error: Exception) -> None:
    for waiter in waiters:
        if not waiter.done():
            waiter.set_exception(error)
