from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Sequence

from psycopg import Connection

from ..analytics import OrderTotals, order_totals
from ..domain import (
    ExtractedPart,
    NewOrderDetail,
    NewPart,
    NewServiceOrder,
    OrderDetail,
    OrderStatus,
    Part,
    PartStatus,
    ServiceOrder,
    TransactionLine,
    TransactionType,
)
from ..errors import NotFound, ValidationError
from ..ledger import make_transaction, to_cents
from ..pricing import PricingCatalog, resolve_price
from ..repositories.car_repo import CarRepository
from ..repositories.catalog_repo import CatalogRepository
from ..repositories.client_repo import ClientRepository
from ..repositories.detail_repo import DetailRepository
from ..repositories.ledger_repo import LedgerRepository
from ..repositories.order_part_repo import OrderPartRepository
from ..repositories.order_repo import OrderRepository
from .inventory_service import InventoryService

logger = logging.getLogger(__name__)

DEFAULT_MARKUP_PCT = Decimal("30")


@dataclass(frozen=True)
class OrderCard:
    order: ServiceOrder
    details: list[OrderDetail]
    parts: list[Part]
    totals: OrderTotals


class OrderService:
    """
    Service order lifecycle.

    Every method expects to run inside one Db.transaction() block, so the
    rows it writes commit together or not at all.
    """

    def __init__(
        self,
        *,
        client_repo: ClientRepository,
        car_repo: CarRepository,
        catalog_repo: CatalogRepository,
        order_repo: OrderRepository,
        detail_repo: DetailRepository,
        order_part_repo: OrderPartRepository,
        ledger_repo: LedgerRepository,
        inventory: InventoryService,
        markup_pct: Decimal = DEFAULT_MARKUP_PCT,
    ) -> None:
        self.client_repo = client_repo
        self.car_repo = car_repo
        self.catalog_repo = catalog_repo
        self.order_repo = order_repo
        self.detail_repo = detail_repo
        self.order_part_repo = order_part_repo
        self.ledger_repo = ledger_repo
        self.inventory = inventory
        self.markup_pct = markup_pct

    # --- orders

    def create_order(
        self,
        conn: Connection,
        order: NewServiceOrder,
        initial_details: Sequence[NewOrderDetail] = (),
    ) -> int:
        if self.client_repo.get(conn, order.client_id) is None:
            raise ValidationError(f"Unknown client: {order.client_id}")
        if self.car_repo.get(conn, order.car_id) is None:
            raise ValidationError(f"Unknown car: {order.car_id}")
        if order.mileage is not None and order.mileage < 0:
            raise ValidationError("Mileage cannot be negative.")
        self._check_masters(conn, order.master_ids)

        catalog = self.catalog_repo.pricing_catalog(conn, order.car_id)
        priced = [self._price_detail(catalog, order.car_id, d) for d in initial_details]

        order_id = self.order_repo.create(conn, order)
        for d in priced:
            self._insert_detail(conn, order_id, d)

        logger.info("Created order #%s with %d detail(s)", order_id, len(priced))
        return order_id

    def get_order(self, conn: Connection, order_id: int) -> ServiceOrder:
        order = self.order_repo.get(conn, order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found.")
        return order

    def get_order_card(self, conn: Connection, order_id: int) -> OrderCard:
        order = self.get_order(conn, order_id)
        details = self.detail_repo.list_for_order(conn, order_id)
        parts = self.order_part_repo.list_for_order(conn, order_id)
        return OrderCard(order=order, details=details, parts=parts, totals=order_totals(details, parts))

    def assign_masters(self, conn: Connection, order_id: int, master_ids: Sequence[int]) -> None:
        self.get_order(conn, order_id)
        unique_ids = list(dict.fromkeys(master_ids))
        self._check_masters(conn, unique_ids)
        self.order_repo.set_masters(conn, order_id=order_id, master_ids=unique_ids)

    # --- labor lines

    def add_details(self, conn: Connection, order_id: int, details: Sequence[NewOrderDetail]) -> list[int]:
        # no status check: lines may be added to any order, including completed ones
        order = self.get_order(conn, order_id)
        catalog = self.catalog_repo.pricing_catalog(conn, order.car_id)
        priced = [self._price_detail(catalog, order.car_id, d) for d in details]
        return [self._insert_detail(conn, order_id, d) for d in priced]

    def remove_detail(self, conn: Connection, detail_id: int) -> None:
        if not self.detail_repo.delete(conn, detail_id=detail_id):
            raise NotFound(f"Order detail {detail_id} not found.")

    # --- parts

    def add_parts(self, conn: Connection, order_id: int, parts: Sequence[NewPart]) -> list[int]:
        self.get_order(conn, order_id)
        for p in parts:
            if not p.name.strip():
                raise ValidationError("Part name cannot be empty.")
            if p.quantity < 1:
                raise ValidationError("Part quantity must be > 0.")
            if p.price < 0:
                raise ValidationError("Part price cannot be negative.")
        return [self.order_part_repo.add_part(conn, order_id=order_id, part=p) for p in parts]

    def remove_part(self, conn: Connection, part_id: int) -> None:
        if not self.order_part_repo.delete(conn, part_id=part_id):
            raise NotFound(f"Part {part_id} not found.")

    def set_part_status(self, conn: Connection, part_id: int, status: PartStatus) -> None:
        if self.order_part_repo.set_status(conn, part_ids=[part_id], status=status) != 1:
            raise NotFound(f"Part {part_id} not found.")

    def receive_invoice_parts(
        self,
        conn: Connection,
        order_id: int,
        extracted: Sequence[ExtractedPart],
        *,
        supplier: str | None,
        doc_number: str | None,
        markup_pct: Decimal | None = None,
        add_to_inventory: bool = True,
    ) -> list[int]:
        """Attach supplier invoice lines to an order at cost plus markup, optionally stocking them."""
        markup = self.markup_pct if markup_pct is None else markup_pct
        if markup < 0:
            raise ValidationError("Markup cannot be negative.")
        factor = 1 + markup / 100

        new_parts = [
            NewPart(
                name=p.name,
                part_number=p.part_number,
                supplier=supplier,
                price=to_cents(p.price * factor),
                quantity=p.quantity,
                status=PartStatus.ORDERED,
            )
            for p in extracted
        ]
        part_ids = self.add_parts(conn, order_id, new_parts)

        if add_to_inventory and extracted:
            self.inventory.receive_arrival(
                conn,
                lines=[
                    TransactionLine(
                        name=p.name,
                        part_number=p.part_number,
                        quantity=p.quantity,
                        purchase_price=p.price,
                        selling_price=to_cents(p.price * factor),
                    )
                    for p in extracted
                ],
                supplier=supplier,
                doc_number=doc_number,
            )
        return part_ids

    # --- lifecycle

    def transition_status(
        self,
        conn: Connection,
        order_id: int,
        new_status: OrderStatus,
        today: date | None = None,
    ) -> ServiceOrder:
        """
        Set the order status. Any status may follow any other.

        Completing an order deducts its parts from stock once and stamps the
        end date. Ledger lines are written before the flag so the flag only
        commits together with them.
        """
        order = self.get_order(conn, order_id)
        end_date = order.end_date
        deducted = order.is_stock_deducted

        if new_status == OrderStatus.COMPLETED:
            if not deducted:
                deducted = self._deduct_stock(conn, order)
            if end_date is None:
                end_date = today or date.today()

        self.order_repo.update_status(
            conn,
            order_id=order_id,
            status=new_status,
            end_date=end_date,
            is_stock_deducted=deducted,
        )
        logger.info("Order #%s: %s -> %s", order_id, order.status.value, new_status.value)
        return replace(order, status=new_status, end_date=end_date, is_stock_deducted=deducted)

    def _deduct_stock(self, conn: Connection, order: ServiceOrder) -> bool:
        parts = self.order_part_repo.list_for_order(conn, order.order_id)
        if not parts:
            return False

        if self.ledger_repo.has_sale_for_order(conn, order.order_id):
            logger.warning(
                "Order #%s already has a sale transaction; marking stock as deducted", order.order_id
            )
            return True

        factor = 1 + self.markup_pct / 100
        tx = make_transaction(
            TransactionType.SALE,
            [
                TransactionLine(
                    name=p.name,
                    part_number=p.part_number,
                    quantity=p.quantity,
                    purchase_price=to_cents(p.price / factor),
                )
                for p in parts
            ],
            doc_number=str(order.order_id),
            order_id=order.order_id,
        )
        self.inventory.record_transaction(conn, tx)
        self.order_part_repo.set_status(
            conn, part_ids=[p.part_id for p in parts], status=PartStatus.STOCK_DEDUCTED
        )
        return True

    # --- helpers

    def _check_masters(self, conn: Connection, master_ids: Sequence[int]) -> None:
        if not master_ids:
            return
        known = {m.master_id for m in self.catalog_repo.get_masters(conn)}
        missing = [m for m in master_ids if m not in known]
        if missing:
            raise ValidationError(f"Unknown master(s): {missing}")

    @staticmethod
    def _price_detail(catalog: PricingCatalog, car_id: int, d: NewOrderDetail) -> NewOrderDetail:
        if d.service_id not in catalog.services:
            raise ValidationError(f"Unknown service: {d.service_id}")
        if d.quantity < 1:
            raise ValidationError("Detail quantity must be >= 1.")
        if d.cost is not None:
            if d.cost < 0:
                raise ValidationError("Detail cost cannot be negative.")
            return d
        quote = resolve_price(d.service_id, car_id, catalog)
        return replace(d, cost=quote.price)

    def _insert_detail(self, conn: Connection, order_id: int, d: NewOrderDetail) -> int:
        return self.detail_repo.create(
            conn,
            order_id=order_id,
            service_id=d.service_id,
            quantity=d.quantity,
            cost=d.cost,
            custom_name=d.custom_name,
        )
