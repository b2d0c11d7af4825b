# utils/utils.py
from typing import Optional

from pos_terminal.models.models import ArchivedBill, Order, ReconciliationResult
from pos_terminal.storage.catalog_storage import ProductCatalog


def product_label(product_id: int, catalog: Optional[ProductCatalog]) -> str:
    product = catalog.get(product_id) if catalog is not None else None
    return product.name if product else f"Product #{product_id}"


def format_order(order: Order, catalog: Optional[ProductCatalog] = None) -> str:
    if not order.items:
        return f"Seat {order.seat_no}: no items yet."
    state = "closed, waiting for sync" if order.closed else "open"
    lines = [f"*Seat {order.seat_no}* ({state})", ""]
    for idx, item in enumerate(order.items, start=1):
        line = f"{idx}. {product_label(item.product_id, catalog)} x{item.quantity} ({item.size.value}) - {item.status.value}"
        if item.instructions:
            line += f"\n    _{item.instructions}_"
        lines.append(line)
    return "\n".join(lines)


def format_bill(bill: ArchivedBill) -> str:
    lines = [f"*Seat {bill.seat_no}* closed at {bill.closed_at}", ""]
    for item in bill.items:
        name = item.product_name or f"Product #{item.product_id}"
        lines.append(f"- {name} x{item.quantity} ({item.size.value}) - ${item.unit_price or 0:.2f} each")
    lines.append(f"\n*Total:* ${bill.grand_total:.2f}")
    return "\n".join(lines)


def format_sync_result(result: ReconciliationResult) -> str:
    if result.ok:
        if not result.succeeded:
            return "Nothing to sync."
        text = f"✅ Synced seats: {', '.join(map(str, result.succeeded))}."
        if result.archived:
            text += f"\nArchived: {', '.join(map(str, result.archived))}."
        return text
    failed = sorted(set(result.failed) | set(result.archive_errors))
    return f"⚠️ Sync failed for seats {', '.join(map(str, failed))}. It will be retried automatically."
