from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from .live import SnapshotLoader
from .repositories.car_repo import CarRepository
from .repositories.catalog_repo import CatalogRepository
from .repositories.client_repo import ClientRepository
from .repositories.detail_repo import DetailRepository
from .repositories.ledger_repo import LedgerRepository
from .repositories.order_part_repo import OrderPartRepository
from .repositories.order_repo import OrderRepository
from .reports import ReportLoader
from .services.inventory_service import InventoryService
from .services.order_service import DEFAULT_MARKUP_PCT, OrderService


@dataclass
class Workshop:
    client_repo: ClientRepository = field(default_factory=ClientRepository)
    car_repo: CarRepository = field(default_factory=CarRepository)
    order_repo: OrderRepository = field(default_factory=OrderRepository)
    detail_repo: DetailRepository = field(default_factory=DetailRepository)
    order_part_repo: OrderPartRepository = field(default_factory=OrderPartRepository)
    ledger_repo: LedgerRepository = field(default_factory=LedgerRepository)
    catalog_repo: CatalogRepository | None = None
    markup_pct: Decimal = DEFAULT_MARKUP_PCT

    def __post_init__(self) -> None:
        if self.catalog_repo is None:
            self.catalog_repo = CatalogRepository(car_repo=self.car_repo)
        self.inventory = InventoryService(ledger_repo=self.ledger_repo)
        self.orders = OrderService(
            client_repo=self.client_repo,
            car_repo=self.car_repo,
            catalog_repo=self.catalog_repo,
            order_repo=self.order_repo,
            detail_repo=self.detail_repo,
            order_part_repo=self.order_part_repo,
            ledger_repo=self.ledger_repo,
            inventory=self.inventory,
            markup_pct=self.markup_pct,
        )
        self.reports = ReportLoader(
            order_repo=self.order_repo,
            detail_repo=self.detail_repo,
            order_part_repo=self.order_part_repo,
            catalog_repo=self.catalog_repo,
        )
        self.snapshots = SnapshotLoader(
            order_repo=self.order_repo,
            detail_repo=self.detail_repo,
            order_part_repo=self.order_part_repo,
            catalog_repo=self.catalog_repo,
            ledger_repo=self.ledger_repo,
        )
