"""
Warehouse ledger rules.

Transactions are append-only; stock is never stored, it is projected by
replaying the whole history in chronological order.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Optional, Sequence

from .domain import InventoryItem, TransactionLine, TransactionType, WarehouseTransaction
from .errors import ValidationError

CENT = Decimal("0.01")

INCOMING_TYPES = {TransactionType.ARRIVAL, TransactionType.RETURN}


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def lines_total(lines: Iterable[TransactionLine]) -> Decimal:
    return sum((ln.amount for ln in lines), Decimal(0))


def validate_transaction(tx: WarehouseTransaction) -> None:
    if not tx.lines:
        raise ValidationError("Warehouse transaction must have at least one line.")

    for ln in tx.lines:
        if not ln.name.strip():
            raise ValidationError("Transaction line name cannot be empty.")
        if ln.purchase_price < 0:
            raise ValidationError(f"Purchase price for '{ln.name}' cannot be negative.")
        if ln.purchase_price != to_cents(ln.purchase_price):
            raise ValidationError(f"Purchase price for '{ln.name}' must be in whole cents.")
        if ln.selling_price is not None and ln.selling_price < 0:
            raise ValidationError(f"Selling price for '{ln.name}' cannot be negative.")
        if tx.type == TransactionType.ADJUSTMENT:
            if ln.quantity == 0:
                raise ValidationError(f"Adjustment for '{ln.name}' must change the quantity.")
        elif ln.quantity <= 0:
            raise ValidationError(f"Quantity for '{ln.name}' must be > 0.")

    expected = lines_total(tx.lines)
    if tx.total_amount != expected:
        raise ValidationError(
            f"Transaction total {tx.total_amount} does not match sum of lines {expected}."
        )


def make_transaction(
    tx_type: TransactionType,
    lines: Sequence[TransactionLine],
    *,
    when: Optional[datetime] = None,
    doc_number: Optional[str] = None,
    supplier: Optional[str] = None,
    order_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> WarehouseTransaction:
    return WarehouseTransaction(
        id=None,
        date=when or datetime.now(),
        type=tx_type,
        lines=tuple(lines),
        total_amount=lines_total(lines),
        doc_number=doc_number,
        supplier=supplier,
        order_id=order_id,
        notes=notes,
    )


def stock_key(name: str, part_number: Optional[str]) -> str:
    if part_number and part_number.strip():
        return part_number.strip().lower()
    return name.strip().lower()


@dataclass
class _Balance:
    name: str
    part_number: Optional[str]
    quantity: int = 0
    purchase_price: Decimal = Decimal(0)
    selling_price: Decimal = Decimal(0)

    def receive(self, qty: int, unit_cost: Decimal, selling_price: Optional[Decimal]) -> None:
        if self.quantity <= 0:
            # backordered or empty stock has no cost basis worth blending
            self.purchase_price = unit_cost
        else:
            total = self.purchase_price * self.quantity + unit_cost * qty
            self.purchase_price = total / (self.quantity + qty)
        self.quantity += qty
        if selling_price is not None:
            self.selling_price = selling_price

    def issue(self, qty: int) -> None:
        self.quantity -= qty


def project_stock(
    transactions: Iterable[WarehouseTransaction],
    min_quantities: Optional[Mapping[str, int]] = None,
) -> list[InventoryItem]:
    """Fold the ledger into current balances. Negative quantities are kept as a backorder signal."""
    min_quantities = min_quantities or {}
    ordered = sorted(enumerate(transactions), key=lambda pair: (pair[1].date, pair[0]))

    balances: dict[str, _Balance] = {}
    for _, tx in ordered:
        for ln in tx.lines:
            key = stock_key(ln.name, ln.part_number)
            bal = balances.get(key)
            if bal is None:
                bal = balances[key] = _Balance(name=ln.name, part_number=ln.part_number)

            if tx.type in INCOMING_TYPES:
                bal.receive(ln.quantity, ln.purchase_price, ln.selling_price)
            elif tx.type == TransactionType.SALE:
                bal.issue(ln.quantity)
            elif ln.quantity > 0:
                bal.receive(ln.quantity, ln.purchase_price, ln.selling_price)
            else:
                bal.issue(-ln.quantity)

    return [
        InventoryItem(
            id=key,
            name=bal.name,
            part_number=bal.part_number,
            quantity=bal.quantity,
            purchase_price=bal.purchase_price,
            selling_price=bal.selling_price,
            min_quantity=min_quantities.get(key),
        )
        for key, bal in sorted(balances.items())
    ]


def low_stock(items: Iterable[InventoryItem]) -> list[InventoryItem]:
    return [i for i in items if i.min_quantity is not None and i.quantity <= i.min_quantity]
