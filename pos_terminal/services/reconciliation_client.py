# services/reconciliation_client.py
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from pos_terminal.models.errors import NetworkFailure, RemoteRejected
from pos_terminal.models.models import (
    ArchivedBill,
    Order,
    PrintResult,
    Product,
    PushOutcome,
    PushResult,
)

logger = logging.getLogger(__name__)

_MAX_ERROR_BODY = 1000


class ReconciliationClient:
    """HTTP client for the remote authority that owns orders and printed bills."""

    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[aiohttp.ClientSession] = None):
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "ReconciliationClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def push_order(self, order: Order) -> PushResult:
        """PUT /orders/{seatNo}: full replace of the seat's order. Safe to repeat."""
        url = self._url(f"/orders/{order.seat_no}")
        try:
            async with self._get_session().put(url, json=order.to_dict()) as resp:
                if 200 <= resp.status < 300:
                    logger.info(f"Seat {order.seat_no} pushed (HTTP {resp.status})")
                    return PushResult(order.seat_no, PushOutcome.SUCCESS, status=resp.status)
                body = await resp.text()
                msg = f"http {resp.status} {resp.reason or ''}".strip()
                if body:
                    msg = f"{msg}: {body[:_MAX_ERROR_BODY]}"
                logger.warning(f"Seat {order.seat_no} rejected by remote: {msg}")
                return PushResult(order.seat_no, PushOutcome.HTTP_FAILURE, status=resp.status, error=msg)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            msg = str(e) or e.__class__.__name__
            logger.warning(f"Seat {order.seat_no} push failed, remote unreachable: {msg}")
            return PushResult(order.seat_no, PushOutcome.NETWORK_FAILURE, error=msg)

    async def pull_active_orders(self) -> Dict[int, Order]:
        """GET /orders: snapshot of every active order on the remote, keyed by seat."""
        data = await self._get_json("/orders")
        if not isinstance(data, dict):
            raise RemoteRejected("expected a mapping of seatNo to order")
        orders = {}
        try:
            for seat, raw in data.items():
                order = Order.from_dict({"seatNo": seat, **raw})
                orders[order.seat_no] = order
        except (ValueError, KeyError, TypeError) as e:
            raise RemoteRejected(f"malformed order snapshot: {e!r}") from e
        return orders

    async def fetch_archived_bills(self) -> List[ArchivedBill]:
        """GET /printed-bills, newest first."""
        data = await self._get_json("/printed-bills")
        try:
            bills = [ArchivedBill.from_dict(item) for item in data or []]
        except (ValueError, KeyError, TypeError) as e:
            raise RemoteRejected(f"malformed printed bills: {e!r}") from e
        bills.sort(key=lambda bill: bill.closed_at, reverse=True)
        return bills

    async def fetch_products(self) -> List[Product]:
        data = await self._get_json("/ProductListingItems")
        try:
            return [Product.from_dict(item) for item in data or []]
        except (ValueError, KeyError, TypeError) as e:
            raise RemoteRejected(f"malformed product listing: {e!r}") from e

    async def request_print(self, bill: ArchivedBill) -> PrintResult:
        """POST /print-bill. Not idempotent, the caller must not retry on failure."""
        try:
            async with self._get_session().post(self._url("/print-bill"), json=bill.to_dict()) as resp:
                text = await resp.text()
                message = _message_from_body(text)
                if 200 <= resp.status < 300:
                    logger.info(f"Bill for seat {bill.seat_no} sent to printer")
                    return PrintResult(True, message or "Bill sent to printer")
                logger.warning(f"Print request for seat {bill.seat_no} failed: HTTP {resp.status}")
                return PrintResult(False, message or f"HTTP error! status: {resp.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Print request for seat {bill.seat_no} failed: {e}")
            return PrintResult(False, str(e) or e.__class__.__name__)

    async def ping(self) -> bool:
        """True if the remote answers at all, whatever the status."""
        try:
            async with self._get_session().head(self._url("/")):
                return True
        except (aiohttp.ClientError, asyncio.TimeoutError):
            return False

    async def _get_json(self, path: str) -> Any:
        try:
            async with self._get_session().get(self._url(path)) as resp:
                if not 200 <= resp.status < 300:
                    body = await resp.text()
                    raise RemoteRejected(f"GET {path}: http {resp.status}: {body[:_MAX_ERROR_BODY]}", status=resp.status)
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkFailure(f"GET {path}: {str(e) or e.__class__.__name__}") from e
        except ValueError as e:
            raise RemoteRejected(f"GET {path}: invalid JSON: {e}") from e


def _message_from_body(text: str) -> str:
    if not text:
        return ""
    try:
        data = json.loads(text)
    except ValueError:
        return text[:_MAX_ERROR_BODY]
    if isinstance(data, dict):
        return str(data.get("message", ""))
    return ""
