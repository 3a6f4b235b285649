"""
Financial rollups over completed orders.

Salaries come from commission.compute_commission so that these numbers and
the per-master earnings always agree.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from .commission import compute_commission
from .domain import Master, OrderDetail, OrderStatus, Part, ServiceOrder

PERIOD_NAMES = ("this_month", "last_month", "this_year", "all_time")

ALL_TIME_START = date(1970, 1, 1)
ALL_TIME_END = date(2100, 1, 1)


@dataclass(frozen=True)
class PeriodTotals:
    services_revenue: Decimal
    parts_revenue: Decimal
    total_salaries: Decimal
    order_count: int

    @property
    def total_revenue(self) -> Decimal:
        return self.services_revenue + self.parts_revenue

    @property
    def net_profit(self) -> Decimal:
        return self.total_revenue - self.total_salaries


@dataclass(frozen=True)
class AnalyticsSummary:
    start: date
    end: date
    current: PeriodTotals
    previous: Optional[PeriodTotals]
    revenue_trend: Optional[Decimal]
    profit_trend: Optional[Decimal]


@dataclass(frozen=True)
class OrderTotals:
    services: Decimal
    parts: Decimal

    @property
    def final(self) -> Decimal:
        return self.services + self.parts


@dataclass(frozen=True)
class DailyRevenue:
    day: date
    services: Decimal
    parts: Decimal


def order_totals(details: Iterable[OrderDetail], parts: Iterable[Part]) -> OrderTotals:
    return OrderTotals(
        services=sum((d.line_total for d in details), Decimal(0)),
        parts=sum((p.line_total for p in parts), Decimal(0)),
    )


def completed_in_period(orders: Iterable[ServiceOrder], start: date, end: date) -> list[ServiceOrder]:
    return [o for o in orders if o.status == OrderStatus.COMPLETED and start <= o.date <= end]


def period_totals(
    orders: Iterable[ServiceOrder],
    details: Iterable[OrderDetail],
    parts: Iterable[Part],
    masters: Iterable[Master],
    start: date,
    end: date,
) -> PeriodTotals:
    selected = completed_in_period(orders, start, end)
    ids = {o.order_id for o in selected}
    details = [d for d in details if d.order_id in ids]
    parts = [p for p in parts if p.order_id in ids]
    masters = list(masters)

    salaries = Decimal(0)
    for order in selected:
        salaries += sum(compute_commission(order, details, masters).values(), Decimal(0))

    totals = order_totals(details, parts)
    return PeriodTotals(
        services_revenue=totals.services,
        parts_revenue=totals.parts,
        total_salaries=salaries,
        order_count=len(selected),
    )


def trend(current: Decimal, previous: Decimal) -> Decimal:
    if previous == 0:
        return Decimal(100) if current > 0 else Decimal(0)
    return (current - previous) / previous * 100


def preceding_period(start: date, end: date) -> tuple[date, date]:
    length = end - start
    prev_end = start - timedelta(days=1)
    return prev_end - length, prev_end


def period_bounds(name: str, today: date) -> tuple[date, date]:
    first_of_month = today.replace(day=1)
    if name == "this_month":
        next_month = (first_of_month + timedelta(days=32)).replace(day=1)
        return first_of_month, next_month - timedelta(days=1)
    if name == "last_month":
        end = first_of_month - timedelta(days=1)
        return end.replace(day=1), end
    if name == "this_year":
        return date(today.year, 1, 1), date(today.year, 12, 31)
    if name == "all_time":
        return ALL_TIME_START, ALL_TIME_END
    raise ValueError(f"Unknown period: {name}. Expected one of {PERIOD_NAMES}.")


def previous_period_bounds(name: str, today: date) -> Optional[tuple[date, date]]:
    """The calendar period a named preset is compared with; all_time has none."""
    if name == "this_month":
        return period_bounds("last_month", today)
    if name == "last_month":
        return period_bounds("last_month", period_bounds("last_month", today)[0])
    if name == "this_year":
        return date(today.year - 1, 1, 1), date(today.year - 1, 12, 31)
    if name == "all_time":
        return None
    raise ValueError(f"Unknown period: {name}. Expected one of {PERIOD_NAMES}.")


def summarize(
    orders: Iterable[ServiceOrder],
    details: Iterable[OrderDetail],
    parts: Iterable[Part],
    masters: Iterable[Master],
    start: date,
    end: date,
    *,
    compare: bool = True,
    previous: Optional[tuple[date, date]] = None,
) -> AnalyticsSummary:
    """
    Totals for start..end. With compare, trends are taken against `previous`
    or, when it is not given, the equal-length period right before start.
    """
    orders, details, parts, masters = list(orders), list(details), list(parts), list(masters)
    current = period_totals(orders, details, parts, masters, start, end)
    if not compare:
        return AnalyticsSummary(start, end, current, None, None, None)

    prev_start, prev_end = previous or preceding_period(start, end)
    before = period_totals(orders, details, parts, masters, prev_start, prev_end)
    return AnalyticsSummary(
        start=start,
        end=end,
        current=current,
        previous=before,
        revenue_trend=trend(current.total_revenue, before.total_revenue),
        profit_trend=trend(current.net_profit, before.net_profit),
    )


def daily_breakdown(
    orders: Iterable[ServiceOrder],
    details: Iterable[OrderDetail],
    parts: Iterable[Part],
    start: date,
    end: date,
) -> list[DailyRevenue]:
    selected = completed_in_period(orders, start, end)
    by_day: dict[date, list[Decimal]] = {}
    details, parts = list(details), list(parts)
    for order in selected:
        totals = order_totals(
            (d for d in details if d.order_id == order.order_id),
            (p for p in parts if p.order_id == order.order_id),
        )
        bucket = by_day.setdefault(order.date, [Decimal(0), Decimal(0)])
        bucket[0] += totals.services
        bucket[1] += totals.parts
    return [DailyRevenue(day, s, p) for day, (s, p) in sorted(by_day.items())]
