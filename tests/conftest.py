import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from pos_terminal.models.models import (
    CheckoutItem,
    ItemStatus,
    Order,
    PrintResult,
    Product,
    PushOutcome,
    PushResult,
    Size,
)
from pos_terminal.services.reconciliation_client import ReconciliationClient
from pos_terminal.storage.catalog_storage import ProductCatalog
from pos_terminal.storage.orders_storage import OrderStore

PRODUCTS = [
    {"pk_key": 1, "ProductName": "Flat White", "ProductPrice": "$4.50", "ProductType": "Coffee",
     "ProductImage": "", "ShowInListing": True, "FoodType": "veg"},
    {"pk_key": 2, "ProductName": "Bagel", "ProductPrice": "$3.00", "ProductType": "Food",
     "ProductImage": "", "ShowInListing": True, "FoodType": "veg"},
]


class StubAuthority:
    """In-process remote authority speaking the same HTTP contract as the real server."""

    def __init__(self):
        self.orders = {}
        self.printed_bills = []
        self.products = list(PRODUCTS)
        self.reject_seats = set()
        self.print_fails = False
        self.put_count = 0
        self.print_requests = []
        self.base_url = ""

        app = web.Application()
        app.router.add_get("/", self.root)
        app.router.add_put("/orders/{seat_no}", self.put_order)
        app.router.add_get("/orders", self.get_orders)
        app.router.add_get("/printed-bills", self.get_printed_bills)
        app.router.add_post("/print-bill", self.print_bill)
        app.router.add_get("/ProductListingItems", self.get_products)
        self.app = app

    async def root(self, request):
        return web.Response(text="ok")

    async def put_order(self, request):
        seat_no = request.match_info["seat_no"]
        self.put_count += 1
        if int(seat_no) in self.reject_seats:
            return web.json_response({"message": "validation failed"}, status=500)
        self.orders[seat_no] = await request.json()
        return web.json_response({"message": "ok"})

    async def get_orders(self, request):
        return web.json_response(self.orders)

    async def get_printed_bills(self, request):
        return web.json_response(self.printed_bills)

    async def print_bill(self, request):
        self.print_requests.append(await request.json())
        if self.print_fails:
            return web.json_response({"message": "Printer not connected"}, status=500)
        return web.json_response({"message": "Bill printed successfully"})

    async def get_products(self, request):
        return web.json_response(self.products)


class FakeClient:
    """Scripted push outcomes per seat; records what was pushed."""

    def __init__(self):
        self.outcomes = {}
        self.raise_for = set()
        self.pushed = []
        self.remote = {}
        self.online = True
        self.products = [Product.from_dict(p) for p in PRODUCTS]
        self.print_result = PrintResult(True, "Bill printed successfully")
        self.in_flight = 0
        self.max_in_flight = 0

    async def push_order(self, order):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            self.pushed.append(order)
            if order.seat_no in self.raise_for:
                raise RuntimeError("boom")
            outcome = self.outcomes.get(order.seat_no, PushOutcome.SUCCESS)
            if outcome is PushOutcome.SUCCESS:
                self.remote[order.seat_no] = order.to_dict()
                return PushResult(order.seat_no, outcome, status=200)
            if outcome is PushOutcome.HTTP_FAILURE:
                return PushResult(order.seat_no, outcome, status=500, error="http 500")
            return PushResult(order.seat_no, outcome, error="connection refused")
        finally:
            self.in_flight -= 1

    async def pull_active_orders(self):
        return {seat: Order.from_dict(data) for seat, data in self.remote.items()}

    async def fetch_products(self):
        return list(self.products)

    async def fetch_archived_bills(self):
        return []

    async def request_print(self, bill):
        return self.print_result

    async def ping(self):
        return self.online


def make_item(cart_item_id="1-Small-1", product_id=1, quantity=2, size=Size.SMALL, **kwargs):
    return CheckoutItem(cart_item_id=cart_item_id, product_id=product_id, quantity=quantity, size=size,
                        status=kwargs.pop("status", ItemStatus.ORDERED), **kwargs)


@pytest_asyncio.fixture
async def store(tmp_path):
    store = OrderStore(str(tmp_path / "orders.json"))
    await store.load()
    return store


@pytest_asyncio.fixture
async def catalog(tmp_path):
    catalog = ProductCatalog(str(tmp_path / "products.json"))
    await catalog.replace([Product.from_dict(p) for p in PRODUCTS])
    return catalog


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest_asyncio.fixture
async def authority():
    stub = StubAuthority()
    server = TestServer(stub.app)
    await server.start_server()
    stub.base_url = str(server.make_url("/")).rstrip("/")
    yield stub
    await server.close()


@pytest_asyncio.fixture
async def client(authority):
    async with ReconciliationClient(authority.base_url, timeout=5) as client:
        yield client
