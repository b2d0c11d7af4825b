import json

import aiofiles.os
import pytest

from conftest import make_item
from pos_terminal.models.errors import StoreIOError
from pos_terminal.models.models import ArchivedBill, ItemStatus, Order
from pos_terminal.storage.orders_storage import OrderStore, StoreChange


def bill_for(seat_no, total=9.0):
    return ArchivedBill(seat_no=seat_no, items=[make_item()], grand_total=total, closed_at="2026-01-01T10:00:00+00:00")


async def test_upsert_replaces_the_whole_order(store):
    await store.upsert_order(3, [make_item("a"), make_item("b")])
    await store.upsert_order(3, [make_item("c")], closed=True)

    order = await store.get_order(3)
    assert [item.cart_item_id for item in order.items] == ["c"]
    assert order.closed is True


async def test_get_order_for_unknown_seat_is_none(store):
    assert await store.get_order(42) is None


async def test_active_orders_are_listed_by_seat(store):
    for seat in (7, 2, 5):
        await store.upsert_order(seat, [make_item()])

    assert [order.seat_no for order in await store.list_active_orders()] == [2, 5, 7]


async def test_returned_orders_are_copies(store):
    await store.upsert_order(3, [make_item()])
    order = await store.get_order(3)
    order.items[0].status = ItemStatus.MADE

    assert (await store.get_order(3)).items[0].status is ItemStatus.ORDERED


async def test_state_survives_reload(store, tmp_path):
    await store.upsert_order(3, [make_item()], closed=False)
    await store.upsert_order(4, [make_item()], closed=True)
    await store.archive_and_remove(4, bill_for(4))

    reloaded = OrderStore(str(tmp_path / "orders.json"))
    await reloaded.load()

    assert [o.seat_no for o in await reloaded.list_active_orders()] == [3]
    bills = await reloaded.list_archived_bills()
    assert [(b.id, b.seat_no) for b in bills] == [(1, 4)]


async def test_archive_moves_seat_and_assigns_incrementing_ids(store):
    await store.upsert_order(3, [make_item()], closed=True)
    await store.upsert_order(4, [make_item()], closed=True)

    first = await store.archive_and_remove(3, bill_for(3))
    second = await store.archive_and_remove(4, bill_for(4))

    assert (first.id, second.id) == (1, 2)
    assert await store.list_active_orders() == []
    assert store.has_archived(3) and store.has_archived(4)


async def test_archiving_an_absent_seat_creates_nothing(store):
    await store.upsert_order(3, [make_item()], closed=True)
    await store.archive_and_remove(3, bill_for(3))

    assert await store.archive_and_remove(3, bill_for(3)) is None
    assert len(await store.list_archived_bills()) == 1


async def test_archive_is_skipped_when_order_changed_since_push(store):
    pushed = await store.upsert_order(3, [make_item()], closed=True)
    await store.upsert_order(3, [make_item(quantity=5)], closed=True)

    assert await store.archive_and_remove(3, bill_for(3), if_matches=pushed) is None
    assert store.has_active(3)
    assert not store.has_archived(3)


async def test_failed_write_leaves_both_collections_untouched(store, tmp_path, monkeypatch):
    await store.upsert_order(3, [make_item()], closed=True)

    async def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(aiofiles.os, "replace", broken_replace)
    with pytest.raises(StoreIOError):
        await store.archive_and_remove(3, bill_for(3))
    monkeypatch.undo()

    assert store.has_active(3)
    assert not store.has_archived(3)
    reloaded = OrderStore(str(tmp_path / "orders.json"))
    await reloaded.load()
    assert reloaded.has_active(3) and not reloaded.has_archived(3)


async def test_listeners_never_see_a_seat_in_both_or_neither(store):
    seen = []
    store.subscribe(lambda change: seen.append((change, store.has_active(3), store.has_archived(3))))

    await store.upsert_order(3, [make_item()])
    await store.upsert_order(3, [make_item()], closed=True)
    await store.archive_and_remove(3, bill_for(3))

    assert seen == [
        (StoreChange("upsert", 3), True, False),
        (StoreChange("upsert", 3), True, False),
        (StoreChange("archive", 3), False, True),
    ]


async def test_unsubscribed_listener_is_not_called(store):
    calls = []
    unsubscribe = store.subscribe(calls.append)
    unsubscribe()

    await store.upsert_order(1, [make_item()])
    assert calls == []


async def test_listener_error_does_not_undo_commit(store):
    def broken(change):
        raise RuntimeError("render failed")

    store.subscribe(broken)
    await store.upsert_order(1, [make_item()])

    assert store.has_active(1)


async def test_replace_active_orders_keeps_archive(store):
    await store.upsert_order(1, [make_item()], closed=True)
    await store.archive_and_remove(1, bill_for(1))
    await store.upsert_order(2, [make_item()])

    await store.replace_active_orders([Order(seat_no=8, items=[make_item()])])

    assert [o.seat_no for o in await store.list_active_orders()] == [8]
    assert len(await store.list_archived_bills()) == 1


async def test_corrupt_file_raises_store_io_error(tmp_path):
    path = tmp_path / "orders.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreIOError):
        await OrderStore(str(path)).load()


async def test_document_layout_on_disk(store, tmp_path):
    await store.upsert_order(3, [make_item()])

    data = json.loads((tmp_path / "orders.json").read_text(encoding="utf-8"))
    assert data["orders"]["3"]["seatNo"] == 3
    assert data["orders"]["3"]["items"][0]["size"] == "Small"
    assert data["printed_bills"] == []
