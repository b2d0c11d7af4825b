# models/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Size(str, Enum):
    SMALL = "Small"
    MEDIUM = "Medium"


class ItemStatus(str, Enum):
    ORDERED = "ordered"
    IN_PROGRESS = "in-progress"
    MADE = "made"
    DELIVERED = "delivered"


@dataclass
class Product:
    """Read-only catalog entry, used only to price items."""
    pk_key: int
    name: str
    price: float
    product_type: str = ""
    image: str = ""
    show_in_listing: bool = True
    food_type: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        return cls(
            pk_key=int(data["pk_key"]),
            name=data.get("ProductName", ""),
            price=parse_price(data.get("ProductPrice", 0)),
            product_type=data.get("ProductType", ""),
            image=data.get("ProductImage", ""),
            show_in_listing=bool(data.get("ShowInListing", True)),
            food_type=data.get("FoodType", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pk_key": self.pk_key,
            "ProductName": self.name,
            "ProductPrice": self.price,
            "ProductType": self.product_type,
            "ProductImage": self.image,
            "ShowInListing": self.show_in_listing,
            "FoodType": self.food_type,
        }


@dataclass
class CheckoutItem:
    cart_item_id: str
    product_id: int
    quantity: int
    size: Size
    instructions: str = ""
    status: ItemStatus = ItemStatus.ORDERED
    # Filled in when the seat is closed; None means "not priced yet"
    product_name: Optional[str] = None
    unit_price: Optional[float] = None
    item_total: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckoutItem":
        return cls(
            cart_item_id=str(data["cartItemId"]),
            product_id=int(data["productId"]),
            quantity=int(data["quantity"]),
            size=Size(data["size"]),
            instructions=data.get("instructions") or "",
            status=ItemStatus(data.get("status", ItemStatus.ORDERED.value)),
            product_name=data.get("productName"),
            unit_price=data.get("unitPrice"),
            item_total=data.get("itemTotal"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "cartItemId": self.cart_item_id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "size": self.size.value,
            "instructions": self.instructions,
            "status": self.status.value,
        }
        if self.product_name is not None:
            data["productName"] = self.product_name
        if self.unit_price is not None:
            data["unitPrice"] = self.unit_price
        if self.item_total is not None:
            data["itemTotal"] = self.item_total
        return data


@dataclass
class Order:
    seat_no: int
    items: List[CheckoutItem] = field(default_factory=list)
    closed: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        return cls(
            seat_no=int(data["seatNo"]),
            items=[CheckoutItem.from_dict(item) for item in data.get("items", [])],
            closed=bool(data.get("closed", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seatNo": self.seat_no,
            "items": [item.to_dict() for item in self.items],
            "closed": self.closed,
        }


@dataclass
class ArchivedBill:
    seat_no: int
    items: List[CheckoutItem]  # priced snapshots
    grand_total: float
    closed_at: str  # ISO 8601, UTC
    id: Optional[int] = None  # local archive key, assigned by the store

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArchivedBill":
        return cls(
            seat_no=int(data["seatNo"]),
            items=[CheckoutItem.from_dict(item) for item in data.get("items", [])],
            grand_total=float(data.get("grandTotal", 0)),
            closed_at=data.get("closedAt", ""),
            id=data.get("id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "seatNo": self.seat_no,
            "items": [item.to_dict() for item in self.items],
            "grandTotal": self.grand_total,
            "closedAt": self.closed_at,
        }
        if self.id is not None:
            data["id"] = self.id
        return data

    @property
    def bill_key(self) -> str:
        return f"{self.seat_no}-{self.closed_at}"


class PushOutcome(str, Enum):
    SUCCESS = "success"
    HTTP_FAILURE = "http_failure"
    NETWORK_FAILURE = "network_failure"


@dataclass
class PushResult:
    """Outcome of a single PUT /orders/{seatNo}."""
    seat_no: int
    outcome: PushOutcome
    status: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is PushOutcome.SUCCESS


@dataclass
class PrintResult:
    ok: bool
    message: str


class SyncStatus(str, Enum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"


@dataclass
class ReconciliationResult:
    status: SyncStatus
    succeeded: List[int] = field(default_factory=list)
    failed: Dict[int, PushResult] = field(default_factory=dict)
    archived: List[int] = field(default_factory=list)
    archive_errors: Dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is SyncStatus.SUCCESS


def parse_price(raw: Any) -> float:
    """Accepts numbers or catalog strings like "$12.50"."""
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip().replace("$", "").replace(",", "")
    return float(text) if text else 0.0
