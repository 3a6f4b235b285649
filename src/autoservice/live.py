"""
Live recompute pipeline.

Derived numbers (order totals, commissions, stock) are never patched in
place. Every change notification produces a new snapshot and the whole
derived state is recomputed from it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Optional

from psycopg import Connection

from .analytics import OrderTotals, order_totals
from .commission import compute_commission
from .db import CHANGES_CHANNEL, Db
from .domain import InventoryItem, Master, OrderDetail, OrderStatus, Part, ServiceOrder, WarehouseTransaction
from .ledger import project_stock
from .repositories.catalog_repo import CatalogRepository
from .repositories.detail_repo import DetailRepository
from .repositories.ledger_repo import LedgerRepository
from .repositories.order_part_repo import OrderPartRepository
from .repositories.order_repo import OrderRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkshopSnapshot:
    orders: tuple[ServiceOrder, ...] = ()
    details: tuple[OrderDetail, ...] = ()
    parts: tuple[Part, ...] = ()
    masters: tuple[Master, ...] = ()
    transactions: tuple[WarehouseTransaction, ...] = ()
    min_quantities: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class DerivedState:
    order_totals: dict[int, OrderTotals]
    commissions: dict[int, dict[int, Decimal]]
    stock: list[InventoryItem]


def recompute(snapshot: WorkshopSnapshot) -> DerivedState:
    details_by_order: dict[int, list[OrderDetail]] = {}
    for d in snapshot.details:
        details_by_order.setdefault(d.order_id, []).append(d)
    parts_by_order: dict[int, list[Part]] = {}
    for p in snapshot.parts:
        parts_by_order.setdefault(p.order_id, []).append(p)

    totals = {
        o.order_id: order_totals(details_by_order.get(o.order_id, []), parts_by_order.get(o.order_id, []))
        for o in snapshot.orders
    }
    commissions = {
        o.order_id: compute_commission(o, details_by_order.get(o.order_id, []), snapshot.masters)
        for o in snapshot.orders
        if o.status == OrderStatus.COMPLETED
    }
    return DerivedState(
        order_totals=totals,
        commissions=commissions,
        stock=project_stock(snapshot.transactions, snapshot.min_quantities),
    )


class SnapshotLoader:
    def __init__(
        self,
        *,
        order_repo: OrderRepository,
        detail_repo: DetailRepository,
        order_part_repo: OrderPartRepository,
        catalog_repo: CatalogRepository,
        ledger_repo: LedgerRepository,
        order_limit: int = 500,
    ) -> None:
        self.order_repo = order_repo
        self.detail_repo = detail_repo
        self.order_part_repo = order_part_repo
        self.catalog_repo = catalog_repo
        self.ledger_repo = ledger_repo
        self.order_limit = order_limit

    def load(self, conn: Connection) -> WorkshopSnapshot:
        orders = self.order_repo.list(conn, limit=self.order_limit)
        ids = [o.order_id for o in orders]
        return WorkshopSnapshot(
            orders=tuple(orders),
            details=tuple(self.detail_repo.list_for_orders(conn, ids)),
            parts=tuple(self.order_part_repo.list_for_orders(conn, ids)),
            masters=tuple(self.catalog_repo.get_masters(conn)),
            transactions=tuple(self.ledger_repo.list_all(conn)),
            min_quantities=self.ledger_repo.min_quantities(conn),
        )


class ChangeListener:
    """Recompute derived state on every workshop_changes notification."""

    def __init__(self, db: Db, loader: SnapshotLoader, on_change: Callable[[DerivedState], None]) -> None:
        self.db = db
        self.loader = loader
        self.on_change = on_change

    def refresh(self) -> DerivedState:
        with self.db.session() as conn:
            state = recompute(self.loader.load(conn))
        self.on_change(state)
        return state

    def run(self, max_events: Optional[int] = None) -> None:
        self.refresh()
        with self.db.session() as listen_conn:
            listen_conn.execute(f"LISTEN {CHANGES_CHANNEL};")
            logger.info("Listening on %s", CHANGES_CHANNEL)
            seen = 0
            for notify in listen_conn.notifies():
                logger.debug("Change in %s", notify.payload)
                self.refresh()
                seen += 1
                if max_events is not None and seen >= max_events:
                    break
