from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from .domain import Master, OrderDetail, OrderStatus, ServiceOrder
from .errors import InvariantViolation, NotFound, ValidationError


@dataclass
class MasterStats:
    master_id: int
    total_earnings: Decimal = Decimal(0)
    completed_orders: int = 0


def labor_total(details: Iterable[OrderDetail]) -> Decimal:
    return sum((d.line_total for d in details), Decimal(0))


def compute_commission(
    order: ServiceOrder,
    details: Iterable[OrderDetail],
    masters: Iterable[Master],
) -> dict[int, Decimal]:
    """
    Commission per assigned master for one completed order.

    The base is labor only (parts are excluded), split equally between all
    assigned masters, then multiplied by each master's percentage. Values
    are left unrounded so the sum never exceeds the labor total.
    """
    if order.status != OrderStatus.COMPLETED:
        raise ValidationError(f"Order {order.order_id} is not completed; commission is undefined.")
    if not order.master_ids:
        return {}

    by_id = {m.master_id: m for m in masters}
    order_details = [d for d in details if d.order_id == order.order_id]
    share = labor_total(order_details) / len(order.master_ids)

    result: dict[int, Decimal] = {}
    for master_id in order.master_ids:
        master = by_id.get(master_id)
        if master is None:
            raise NotFound(f"Master {master_id} assigned to order {order.order_id} not found.")
        pct = master.commission_percentage
        if not Decimal(0) <= pct <= Decimal(100):
            raise InvariantViolation(
                f"Master {master_id} has commission {pct}% outside 0..100."
            )
        result[master_id] = result.get(master_id, Decimal(0)) + share * pct / 100
    return result


def master_stats(
    orders: Iterable[ServiceOrder],
    details: Iterable[OrderDetail],
    masters: Iterable[Master],
) -> dict[int, MasterStats]:
    masters = list(masters)
    details = list(details)
    stats = {m.master_id: MasterStats(master_id=m.master_id) for m in masters}

    for order in orders:
        if order.status != OrderStatus.COMPLETED:
            continue
        for master_id, amount in compute_commission(order, details, masters).items():
            s = stats[master_id]
            s.total_earnings += amount
            s.completed_orders += 1
    return stats
