from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .errors import ValidationError

DEFAULT_COMMISSION_PCT = Decimal("40")


class OrderStatus(str, Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    AWAITING_PARTS = "awaiting_parts"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PartStatus(str, Enum):
    ORDERED = "ordered"
    RECEIVED = "received"
    REORDERED = "reordered"
    STOCK_DEDUCTED = "stock_deducted"


class TransactionType(str, Enum):
    ARRIVAL = "arrival"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"


class PriceSource(str, Enum):
    BASE = "base"
    GROUP = "group"


@dataclass(frozen=True)
class Client:
    client_id: int
    first_name: str
    last_name: str
    phone: str
    notes: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class Car:
    car_id: int
    owner_id: int
    make: str
    model: str
    year: Optional[int] = None
    license_plate: str = ""
    vin: str = ""


@dataclass(frozen=True)
class CarModelSpec:
    make: str
    model: str
    # stored for the catalog screens; group matching ignores them
    year_from: Optional[int] = None
    year_to: Optional[int] = None

    def matches(self, car: Car) -> bool:
        return (
            self.make.strip().lower() == car.make.strip().lower()
            and self.model.strip().lower() == car.model.strip().lower()
        )


@dataclass(frozen=True)
class CarGroup:
    group_id: int
    name: str
    models: tuple[CarModelSpec, ...] = ()


@dataclass(frozen=True)
class Service:
    service_id: int
    name: str
    category: str
    base_price: Decimal
    price_overrides: dict[int, Decimal] = field(default_factory=dict)

    def validate(self) -> None:
        if self.base_price < 0:
            raise ValidationError(f"Service '{self.name}': base price cannot be negative.")
        for group_id, price in self.price_overrides.items():
            if price < 0:
                raise ValidationError(
                    f"Service '{self.name}': override for group {group_id} cannot be negative."
                )


@dataclass(frozen=True)
class Master:
    master_id: int
    name: str
    specialization: str
    commission_percentage: Decimal = DEFAULT_COMMISSION_PCT
    phone: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    def validate(self) -> None:
        if not Decimal(0) <= self.commission_percentage <= Decimal(100):
            raise ValidationError(
                f"Master '{self.name}': commission must be between 0 and 100 percent."
            )


@dataclass(frozen=True)
class ServiceOrder:
    order_id: int
    client_id: int
    car_id: int
    date: date
    time: str
    reason: str
    status: OrderStatus = OrderStatus.NEW
    master_ids: tuple[int, ...] = ()
    end_date: Optional[date] = None
    mileage: Optional[int] = None
    is_stock_deducted: bool = False


@dataclass(frozen=True)
class NewServiceOrder:
    client_id: int
    car_id: int
    date: date
    time: str
    reason: str
    master_ids: tuple[int, ...] = ()
    mileage: Optional[int] = None


@dataclass(frozen=True)
class OrderDetail:
    detail_id: int
    order_id: int
    service_id: int
    quantity: int
    cost: Decimal
    custom_name: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.cost * self.quantity


@dataclass(frozen=True)
class NewOrderDetail:
    service_id: int
    quantity: int = 1
    # None means "price it for the order's car now"
    cost: Optional[Decimal] = None
    custom_name: Optional[str] = None


@dataclass(frozen=True)
class Part:
    part_id: int
    order_id: int
    name: str
    price: Decimal
    quantity: int
    status: PartStatus = PartStatus.ORDERED
    part_number: Optional[str] = None
    supplier: Optional[str] = None
    warranty_months: Optional[int] = None

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class NewPart:
    name: str
    price: Decimal
    quantity: int = 1
    status: PartStatus = PartStatus.ORDERED
    part_number: Optional[str] = None
    supplier: Optional[str] = None
    warranty_months: Optional[int] = None


@dataclass(frozen=True)
class TransactionLine:
    name: str
    quantity: int
    purchase_price: Decimal
    part_number: Optional[str] = None
    selling_price: Optional[Decimal] = None

    @property
    def amount(self) -> Decimal:
        return self.purchase_price * self.quantity


@dataclass(frozen=True)
class WarehouseTransaction:
    id: Optional[int]
    date: datetime
    type: TransactionType
    lines: tuple[TransactionLine, ...]
    total_amount: Decimal
    doc_number: Optional[str] = None
    supplier: Optional[str] = None
    order_id: Optional[int] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class InventoryItem:
    id: str
    name: str
    quantity: int
    purchase_price: Decimal
    selling_price: Decimal
    part_number: Optional[str] = None
    min_quantity: Optional[int] = None


@dataclass(frozen=True)
class PriceQuote:
    price: Decimal
    source: PriceSource


@dataclass(frozen=True)
class SuggestedService:
    service_name: str
    reason: str


@dataclass(frozen=True)
class ExtractedPart:
    """One supplier invoice line at cost price."""

    name: str
    quantity: int
    price: Decimal
    part_number: Optional[str] = None
