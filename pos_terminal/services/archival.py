# services/archival.py
import copy
import logging
from datetime import datetime, timezone
from typing import List, Optional

from pos_terminal.config.config import NON_SMALL_SIZE_MULTIPLIER
from pos_terminal.models.models import ArchivedBill, CheckoutItem, Order, PushResult, Size
from pos_terminal.storage.catalog_storage import ProductCatalog
from pos_terminal.storage.orders_storage import OrderStore

logger = logging.getLogger(__name__)


def unit_price_for(base_price: float, size: Size, multiplier: float = NON_SMALL_SIZE_MULTIPLIER) -> float:
    """Small sells at the catalog price, every other size at price * multiplier."""
    if size is Size.SMALL:
        return base_price
    return base_price * multiplier


def price_items(items: List[CheckoutItem], catalog: ProductCatalog,
                multiplier: float = NON_SMALL_SIZE_MULTIPLIER) -> List[CheckoutItem]:
    """
    Returns priced copies of the items.

    Items that already carry a unit price keep it; only unpriced items are
    looked up in the catalog. Unknown products are priced at zero.
    """
    priced = []
    for item in items:
        item = copy.deepcopy(item)
        if item.unit_price is None:
            product = catalog.get(item.product_id)
            if product is None:
                logger.warning(f"Product {item.product_id} not in catalog, priced at 0")
                item.product_name = item.product_name or f"Product #{item.product_id}"
                item.unit_price = 0.0
            else:
                item.product_name = product.name
                item.unit_price = unit_price_for(product.price, item.size, multiplier)
        item.item_total = round(item.unit_price * item.quantity, 2)
        priced.append(item)
    return priced


def build_bill(order: Order, catalog: ProductCatalog, closed_at: Optional[str] = None,
               multiplier: float = NON_SMALL_SIZE_MULTIPLIER) -> ArchivedBill:
    items = price_items(order.items, catalog, multiplier)
    grand_total = round(sum(item.item_total for item in items), 2)
    return ArchivedBill(
        seat_no=order.seat_no,
        items=items,
        grand_total=grand_total,
        closed_at=closed_at or datetime.now(timezone.utc).isoformat(),
    )


async def archive_if_confirmed(store: OrderStore, catalog: ProductCatalog, order: Order,
                               result: PushResult) -> Optional[ArchivedBill]:
    """
    Moves a closed order to the archive once the remote has accepted it.

    `order` must be the exact snapshot that was pushed. Open orders and failed
    pushes are left untouched.
    """
    if not result.ok or not order.closed:
        return None
    bill = build_bill(order, catalog)
    return await store.archive_and_remove(order.seat_no, bill, if_matches=order)
