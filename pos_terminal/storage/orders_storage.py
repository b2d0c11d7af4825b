# storage/orders_storage.py
import asyncio
import copy
import json
import logging
import os
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

import aiofiles
import aiofiles.os

from pos_terminal.models.errors import StoreIOError
from pos_terminal.models.models import ArchivedBill, CheckoutItem, Order

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreChange:
    kind: str  # "upsert", "archive" or "replace"
    seat_no: Optional[int] = None


StoreListener = Callable[[StoreChange], None]


class OrderStore:
    """
    Active orders keyed by seat number plus the archive of printed bills.

    Both collections live in one JSON document. Every mutation writes the new
    document to a temporary file and renames it over the old one, and only then
    swaps the in-memory snapshot, so no reader ever sees a seat in both
    collections or in neither.
    """

    def __init__(self, path: str):
        self._path = path
        self._orders: Dict[int, Order] = {}
        self._bills: List[ArchivedBill] = []
        self._last_bill_id = 0
        self._lock = asyncio.Lock()
        self._listeners: List[StoreListener] = []

    async def load(self) -> None:
        """Loads the document from disk; a missing file means an empty store."""
        try:
            async with aiofiles.open(self._path, 'r', encoding='utf-8') as f:
                content = await f.read()
        except FileNotFoundError:
            content = ""
        except OSError as e:
            logger.error(f"Failed to read {self._path}: {e}")
            raise StoreIOError(f"cannot read order store: {e}") from e

        try:
            data = json.loads(content) if content else {}
            orders = {int(seat): Order.from_dict(order) for seat, order in data.get("orders", {}).items()}
            bills = [ArchivedBill.from_dict(bill) for bill in data.get("printed_bills", [])]
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Order store {self._path} is corrupt: {e}")
            raise StoreIOError(f"cannot decode order store: {e}") from e

        async with self._lock:
            self._orders = orders
            self._bills = bills
            self._last_bill_id = int(data.get("last_bill_id", max((b.id or 0 for b in bills), default=0)))
        logger.info(f"Order store loaded: {len(orders)} active orders, {len(bills)} printed bills")

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Registers a listener called after every committed mutation. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def get_order(self, seat_no: int) -> Optional[Order]:
        order = self._orders.get(seat_no)
        return copy.deepcopy(order) if order else None

    async def list_active_orders(self) -> List[Order]:
        return [copy.deepcopy(self._orders[seat]) for seat in sorted(self._orders)]

    async def list_archived_bills(self) -> List[ArchivedBill]:
        return copy.deepcopy(self._bills)

    def has_active(self, seat_no: int) -> bool:
        return seat_no in self._orders

    def has_archived(self, seat_no: int) -> bool:
        return any(bill.seat_no == seat_no for bill in self._bills)

    async def upsert_order(self, seat_no: int, items: Iterable[CheckoutItem], closed: bool = False) -> Order:
        """Replaces the seat's order entirely."""
        order = Order(seat_no=seat_no, items=copy.deepcopy(list(items)), closed=closed)
        async with self._lock:
            orders = dict(self._orders)
            orders[seat_no] = order
            await self._commit(orders, self._bills, self._last_bill_id, StoreChange("upsert", seat_no))
        logger.info(f"Seat {seat_no} saved: {len(order.items)} items, closed={closed}")
        return copy.deepcopy(order)

    async def replace_active_orders(self, orders: Iterable[Order]) -> None:
        """Clears the active collection and puts the given orders in one transaction."""
        replacement = {order.seat_no: copy.deepcopy(order) for order in orders}
        async with self._lock:
            await self._commit(replacement, self._bills, self._last_bill_id, StoreChange("replace"))
        logger.info(f"Active orders replaced with {len(replacement)} orders")

    async def archive_and_remove(self, seat_no: int, bill: ArchivedBill,
                                 if_matches: Optional[Order] = None) -> Optional[ArchivedBill]:
        """
        Moves a seat from the active collection into the archive.

        Returns the stored bill, or None when the seat is no longer active or
        has changed since `if_matches` was read. Nothing is written in that case.
        """
        async with self._lock:
            current = self._orders.get(seat_no)
            if current is None:
                logger.info(f"Seat {seat_no} is not active, nothing to archive")
                return None
            if if_matches is not None and current != if_matches:
                logger.warning(f"Seat {seat_no} changed since it was pushed, archival skipped")
                return None

            stored = copy.deepcopy(bill)
            stored.id = self._last_bill_id + 1
            orders = dict(self._orders)
            del orders[seat_no]
            bills = self._bills + [stored]
            await self._commit(orders, bills, stored.id, StoreChange("archive", seat_no))

        logger.info(f"Seat {seat_no} archived as bill #{stored.id}, total {stored.grand_total:.2f}")
        return copy.deepcopy(stored)

    async def _commit(self, orders: Dict[int, Order], bills: List[ArchivedBill],
                      last_bill_id: int, change: StoreChange) -> None:
        await self._write(orders, bills, last_bill_id)
        self._orders = orders
        self._bills = bills
        self._last_bill_id = last_bill_id
        self._notify(change)

    async def _write(self, orders: Dict[int, Order], bills: List[ArchivedBill], last_bill_id: int) -> None:
        document = {
            "orders": {str(seat): orders[seat].to_dict() for seat in sorted(orders)},
            "printed_bills": [bill.to_dict() for bill in bills],
            "last_bill_id": last_bill_id,
        }
        tmp_path = f"{self._path}.tmp"
        try:
            directory = os.path.dirname(self._path)
            if directory:
                await aiofiles.os.makedirs(directory, exist_ok=True)
            async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                await f.write(json.dumps(document, ensure_ascii=False, indent=2))
            await aiofiles.os.replace(tmp_path, self._path)
        except OSError as e:
            logger.error(f"Failed to write {self._path}: {e}")
            raise StoreIOError(f"cannot write order store: {e}") from e

    def _notify(self, change: StoreChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception(f"Store listener failed on {change}")
