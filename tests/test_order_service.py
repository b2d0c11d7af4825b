import re

import pytest

from conftest import make_item
from pos_terminal.models.errors import (
    InvalidOrderError,
    NetworkFailure,
    OrderNotFoundError,
    PrintFailure,
    SeatClosedError,
    StoreIOError,
)
from pos_terminal.models.models import ArchivedBill, ItemStatus, Order, PrintResult, PushOutcome, Size
from pos_terminal.services.order_service import OrderService
from pos_terminal.services.sync_scheduler import SyncScheduler
from pos_terminal.storage.sync_queue_storage import SYNC_ORDERS_TAG, DeferredSyncQueue


@pytest.fixture
def service(store, catalog, fake_client):
    scheduler = SyncScheduler(store, fake_client, catalog)
    return OrderService(store, catalog, fake_client, scheduler)


async def test_first_item_creates_the_seat_order(service, fake_client):
    order = await service.add_item(3, product_id=1, quantity=2, size=Size.SMALL)

    assert order.seat_no == 3
    assert order.closed is False
    [item] = order.items
    assert item.status is ItemStatus.ORDERED
    assert re.fullmatch(r"1-Small-\d+", item.cart_item_id)
    assert fake_client.remote[3]["items"][0]["quantity"] == 2


async def test_same_product_size_and_instructions_merge(service):
    await service.add_item(3, 1, 2, Size.SMALL, "no sugar")
    await service.add_item(3, 1, 1, Size.SMALL, "no sugar")
    order = await service.add_item(3, 1, 1, Size.SMALL, "extra hot")

    assert [(i.quantity, i.instructions) for i in order.items] == [(3, "no sugar"), (1, "extra hot")]


async def test_different_size_is_a_new_line(service):
    await service.add_item(3, 1, 1, Size.SMALL)
    order = await service.add_item(3, 1, 1, Size.MEDIUM)

    assert len(order.items) == 2


@pytest.mark.parametrize("seat_no, quantity", [(0, 1), (-2, 1), (3, 0)])
async def test_invalid_input_is_rejected(service, seat_no, quantity):
    with pytest.raises(InvalidOrderError):
        await service.add_item(seat_no, 1, quantity, Size.SMALL)


async def test_local_write_succeeds_while_remote_is_down(service, store, fake_client):
    fake_client.outcomes[3] = PushOutcome.NETWORK_FAILURE

    order = await service.add_item(3, 1, 1, Size.SMALL)

    assert order.items
    assert store.has_active(3)
    assert 3 not in fake_client.remote


async def test_closed_seat_rejects_new_items(service, store, fake_client):
    fake_client.outcomes[3] = PushOutcome.NETWORK_FAILURE
    await service.add_item(3, 1, 1, Size.SMALL)
    await service.close_seat(3)

    with pytest.raises(SeatClosedError):
        await service.add_item(3, 2, 1, Size.SMALL)


async def test_change_item_status(service):
    order = await service.add_item(3, 1, 1, Size.SMALL)

    updated = await service.change_item_status(3, order.items[0].cart_item_id, ItemStatus.IN_PROGRESS)

    assert updated.items[0].status is ItemStatus.IN_PROGRESS


async def test_change_status_of_unknown_item_or_seat(service):
    await service.add_item(3, 1, 1, Size.SMALL)

    with pytest.raises(OrderNotFoundError):
        await service.change_item_status(3, "missing", ItemStatus.MADE)
    with pytest.raises(OrderNotFoundError):
        await service.change_item_status(8, "missing", ItemStatus.MADE)


async def test_close_seat_captures_prices_and_waits_for_remote(service, store, fake_client):
    fake_client.outcomes[3] = PushOutcome.HTTP_FAILURE
    await service.add_item(3, 1, 2, Size.MEDIUM)

    order = await service.close_seat(3)

    assert order.closed is True
    assert order.items[0].unit_price == 9.0
    assert order.items[0].item_total == 18.0
    assert store.has_active(3) and not store.has_archived(3)


async def test_close_seat_archives_once_remote_confirms(service, store):
    await service.add_item(3, 1, 2, Size.SMALL)

    await service.close_seat(3)

    assert not store.has_active(3)
    [bill] = await store.list_archived_bills()
    assert bill.grand_total == 9.0


async def test_open_seats_exclude_closed_ones(service, fake_client):
    fake_client.outcomes[2] = PushOutcome.NETWORK_FAILURE
    await service.add_item(1, 1, 1, Size.SMALL)
    await service.add_item(2, 1, 1, Size.SMALL)
    await service.close_seat(2)

    assert await service.list_open_seats() == [1]


async def test_bootstrap_takes_the_remote_snapshot(service, store, fake_client):
    await store.upsert_order(7, [make_item()])
    fake_client.remote = {4: Order(seat_no=4, items=[make_item()]).to_dict()}

    await service.bootstrap()

    assert [o.seat_no for o in await store.list_active_orders()] == [4]


async def test_bootstrap_offline_keeps_local_orders(service, store, fake_client):
    async def offline():
        raise NetworkFailure("unreachable")

    fake_client.pull_active_orders = offline
    await store.upsert_order(7, [make_item()])

    await service.bootstrap()

    assert store.has_active(7)


async def test_print_failure_is_surfaced(service, fake_client):
    fake_client.print_result = PrintResult(False, "Printer not connected")
    bill = ArchivedBill(seat_no=1, items=[], grand_total=0, closed_at="2026-10-18T12:00:00+00:00")

    with pytest.raises(PrintFailure, match="Printer not connected"):
        await service.print_bill(bill)


async def test_saved_item_is_reported_even_if_sync_cannot_be_scheduled(store, catalog, fake_client, tmp_path,
                                                                       monkeypatch):
    queue = DeferredSyncQueue(str(tmp_path / "sync_queue.json"))
    scheduler = SyncScheduler(store, fake_client, catalog, queue=queue)
    service = OrderService(store, catalog, fake_client, scheduler)

    async def disk_full(tag=SYNC_ORDERS_TAG):
        raise StoreIOError("cannot write sync queue: disk full")

    monkeypatch.setattr(queue, "register", disk_full)
    monkeypatch.setattr(queue, "complete", disk_full)

    order = await service.add_item(3, 1, 1, Size.SMALL)

    assert order.items[0].quantity == 1
    assert store.has_active(3)
