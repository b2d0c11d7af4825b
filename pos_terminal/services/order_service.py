# services/order_service.py
import asyncio
import logging
import time
from typing import Dict, List, Optional

from pos_terminal.models.errors import (
    InvalidOrderError,
    NetworkFailure,
    OrderNotFoundError,
    PrintFailure,
    RemoteRejected,
    SeatClosedError,
    StoreIOError,
)
from pos_terminal.models.models import ArchivedBill, CheckoutItem, ItemStatus, Order, Size
from pos_terminal.services.archival import price_items
from pos_terminal.services.sync_scheduler import SyncScheduler
from pos_terminal.storage.catalog_storage import ProductCatalog
from pos_terminal.storage.orders_storage import OrderStore

logger = logging.getLogger(__name__)


def new_cart_item_id(product_id: int, size: Size) -> str:
    return f"{product_id}-{size.value}-{int(time.time() * 1000)}"


class OrderService:
    """
    Local mutations of seat orders.

    Every mutation is written to the store first and then hands over to the
    sync scheduler; the user never waits on the remote authority. Mutations of
    one seat are serialized.
    """

    def __init__(self, store: OrderStore, catalog: ProductCatalog, client, scheduler: SyncScheduler):
        self._store = store
        self._catalog = catalog
        self._client = client
        self._scheduler = scheduler
        self._seat_locks: Dict[int, asyncio.Lock] = {}

    def _seat_lock(self, seat_no: int) -> asyncio.Lock:
        return self._seat_locks.setdefault(seat_no, asyncio.Lock())

    async def bootstrap(self) -> None:
        """Seeds the catalog if empty, then takes the remote snapshot of active orders."""
        await self._catalog.seed_from_remote(self._client)
        try:
            remote_orders = await self._client.pull_active_orders()
        except (NetworkFailure, RemoteRejected) as e:
            logger.warning(f"Could not pull orders from remote, keeping local state: {e}")
            return
        await self._store.replace_active_orders(remote_orders.values())
        logger.info(f"Orders synced from server: {len(remote_orders)} active seats")

    async def get_order(self, seat_no: int) -> Optional[Order]:
        return await self._store.get_order(seat_no)

    async def list_open_seats(self) -> List[int]:
        return [order.seat_no for order in await self._store.list_active_orders() if not order.closed]

    async def add_item(self, seat_no: int, product_id: int, quantity: int, size: Size,
                       instructions: str = "") -> Order:
        """Adds an item to the seat, creating its order on the first item."""
        if seat_no <= 0:
            raise InvalidOrderError("Seat number must be a positive integer.")
        if quantity <= 0:
            raise InvalidOrderError("Quantity must be a positive integer.")
        size = Size(size)
        instructions = (instructions or "").strip()

        async with self._seat_lock(seat_no):
            current = await self._store.get_order(seat_no)
            if current is not None and current.closed:
                raise SeatClosedError(f"Seat {seat_no} is closed. You cannot add new items to it.")

            items = current.items if current else []
            existing = next(
                (item for item in items
                 if item.product_id == product_id and item.size is size and item.instructions == instructions),
                None,
            )
            if existing is not None:
                existing.quantity += quantity
            else:
                items.append(CheckoutItem(
                    cart_item_id=new_cart_item_id(product_id, size),
                    product_id=product_id,
                    quantity=quantity,
                    size=size,
                    instructions=instructions,
                    status=ItemStatus.ORDERED,
                ))

            order = await self._store.upsert_order(seat_no, items, closed=False)
            logger.info(f"Added {quantity} x product {product_id} ({size.value}) to seat {seat_no}")
            await self._request_sync()
        return order

    async def change_item_status(self, seat_no: int, cart_item_id: str, status: ItemStatus) -> Order:
        status = ItemStatus(status)
        async with self._seat_lock(seat_no):
            order = await self._require_order(seat_no)
            if order.closed:
                raise SeatClosedError(f"Seat {seat_no} is closed.")
            item = next((item for item in order.items if item.cart_item_id == cart_item_id), None)
            if item is None:
                raise OrderNotFoundError(f"Item {cart_item_id} not found on seat {seat_no}.")
            item.status = status
            order = await self._store.upsert_order(seat_no, order.items, closed=order.closed)
            logger.info(f"Item {cart_item_id} status updated to {status.value} for seat {seat_no}")
            await self._request_sync()
        return order

    async def close_seat(self, seat_no: int) -> Order:
        """Marks the seat closed and captures unit prices. Archival waits for the remote to confirm."""
        async with self._seat_lock(seat_no):
            order = await self._require_order(seat_no)
            if order.closed:
                return order
            items = price_items(order.items, self._catalog)
            order = await self._store.upsert_order(seat_no, items, closed=True)
            logger.info(f"Order for seat {seat_no} marked as closed")
            await self._request_sync()
        return order

    async def fetch_printed_bills(self) -> List[ArchivedBill]:
        return await self._client.fetch_archived_bills()

    async def print_bill(self, bill: ArchivedBill) -> str:
        result = await self._client.request_print(bill)
        if not result.ok:
            raise PrintFailure(result.message)
        return result.message

    async def _require_order(self, seat_no: int) -> Order:
        order = await self._store.get_order(seat_no)
        if order is None:
            raise OrderNotFoundError(f"No active order for seat {seat_no}.")
        return order

    async def _request_sync(self) -> None:
        # Sync problems never fail the local mutation
        try:
            result = await self._scheduler.request_sync()
        except StoreIOError as e:
            logger.error(f"Change saved, but the sync could not be scheduled: {e}")
            return
        if result is not None and not result.ok:
            logger.warning(f"Immediate sync failed for seats {sorted(result.failed)}, will retry later")
