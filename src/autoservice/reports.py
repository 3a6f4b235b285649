from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from psycopg import Connection

from .analytics import AnalyticsSummary, DailyRevenue, daily_breakdown, preceding_period, summarize
from .commission import MasterStats, master_stats
from .domain import Master, OrderDetail, Part, ServiceOrder
from .repositories.catalog_repo import CatalogRepository
from .repositories.detail_repo import DetailRepository
from .repositories.order_part_repo import OrderPartRepository
from .repositories.order_repo import OrderRepository


@dataclass(frozen=True)
class CompletedWork:
    orders: list[ServiceOrder]
    details: list[OrderDetail]
    parts: list[Part]
    masters: list[Master]


class ReportLoader:
    def __init__(
        self,
        *,
        order_repo: OrderRepository,
        detail_repo: DetailRepository,
        order_part_repo: OrderPartRepository,
        catalog_repo: CatalogRepository,
    ) -> None:
        self.order_repo = order_repo
        self.detail_repo = detail_repo
        self.order_part_repo = order_part_repo
        self.catalog_repo = catalog_repo

    def completed_work(self, conn: Connection, date_from: date, date_to: date) -> CompletedWork:
        orders = self.order_repo.list_completed(conn, date_from, date_to)
        ids = [o.order_id for o in orders]
        return CompletedWork(
            orders=orders,
            details=self.detail_repo.list_for_orders(conn, ids),
            parts=self.order_part_repo.list_for_orders(conn, ids),
            masters=self.catalog_repo.get_masters(conn),
        )


def revenue_report(
    conn: Connection,
    loader: ReportLoader,
    date_from: date,
    date_to: date,
    *,
    compare: bool = True,
    previous: Optional[tuple[date, date]] = None,
) -> AnalyticsSummary:
    # load both periods at once so the trend uses the same snapshot
    load_from = date_from
    if compare:
        load_from = min(date_from, (previous or preceding_period(date_from, date_to))[0])
    work = loader.completed_work(conn, load_from, date_to)
    return summarize(
        work.orders, work.details, work.parts, work.masters, date_from, date_to, compare=compare, previous=previous
    )


def daily_report(conn: Connection, loader: ReportLoader, date_from: date, date_to: date) -> list[DailyRevenue]:
    work = loader.completed_work(conn, date_from, date_to)
    return daily_breakdown(work.orders, work.details, work.parts, date_from, date_to)


def master_earnings(
    conn: Connection, loader: ReportLoader, date_from: date, date_to: date
) -> dict[int, MasterStats]:
    work = loader.completed_work(conn, date_from, date_to)
    return master_stats(work.orders, work.details, work.masters)
