"""
In-memory stand-ins for the psycopg repositories and for Db.

The fakes keep the repository method signatures so the real services run
unchanged on top of them. FakeDb.transaction() snapshots the store and
restores it when the block raises, the same all-or-nothing contract the
real BEGIN/COMMIT/ROLLBACK block gives.
"""

from __future__ import annotations

import copy
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal

import pytest

from autoservice.config import AiConfig, AppConfig, BusinessConfig, DbConfig, TelegramConfig
from autoservice.domain import (
    Car,
    CarGroup,
    CarModelSpec,
    Client,
    Master,
    NewServiceOrder,
    OrderDetail,
    OrderStatus,
    Part,
    Service,
    ServiceOrder,
)
from autoservice.pricing import PricingCatalog
from autoservice.wiring import Workshop

CONN = object()


@dataclass
class Store:
    clients: dict = field(default_factory=dict)
    cars: dict = field(default_factory=dict)
    services: dict = field(default_factory=dict)
    groups: list = field(default_factory=list)
    masters: dict = field(default_factory=dict)
    orders: dict = field(default_factory=dict)
    details: dict = field(default_factory=dict)
    parts: dict = field(default_factory=dict)
    transactions: list = field(default_factory=list)
    thresholds: dict = field(default_factory=dict)
    counters: dict = field(default_factory=dict)

    def next_id(self, kind: str) -> int:
        self.counters[kind] = self.counters.get(kind, 0) + 1
        return self.counters[kind]


class FakeDb:
    def __init__(self, store: Store) -> None:
        self.store = store
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def session(self):
        yield CONN

    @contextmanager
    def transaction(self):
        saved = copy.deepcopy(self.store.__dict__)
        try:
            yield CONN
        except Exception:
            self.store.__dict__.update(saved)
            self.rollbacks += 1
            raise
        self.commits += 1


class FakeClientRepository:
    def __init__(self, store: Store) -> None:
        self.store = store

    def create(self, conn, *, first_name, last_name, phone, notes=""):
        client_id = self.store.next_id("client")
        self.store.clients[client_id] = Client(client_id, first_name, last_name, phone, notes)
        return client_id

    def get(self, conn, client_id):
        return self.store.clients.get(client_id)

    def list(self, conn, limit=50):
        return list(self.store.clients.values())[:limit]


class FakeCarRepository:
    def __init__(self, store: Store) -> None:
        self.store = store

    def create(self, conn, *, owner_id, make, model, year, license_plate="", vin=""):
        car_id = self.store.next_id("car")
        self.store.cars[car_id] = Car(car_id, owner_id, make, model, year, license_plate, vin)
        return car_id

    def get(self, conn, car_id):
        return self.store.cars.get(car_id)

    def list_by_owner(self, conn, owner_id):
        return [c for c in self.store.cars.values() if c.owner_id == owner_id]

    def list_all(self, conn):
        return list(self.store.cars.values())


class FakeCatalogRepository:
    def __init__(self, store: Store) -> None:
        self.store = store

    def create_service(self, conn, service):
        service.validate()
        service_id = self.store.next_id("service")
        self.store.services[service_id] = replace(service, service_id=service_id)
        return service_id

    def update_service(self, conn, service):
        service.validate()
        self.store.services[service.service_id] = service

    def get_service(self, conn, service_id):
        return self.store.services.get(service_id)

    def list_services(self, conn):
        return sorted(self.store.services.values(), key=lambda s: (s.category, s.name))

    def create_car_group(self, conn, *, name, models, position=0):
        group_id = self.store.next_id("group")
        self.store.groups.append((position, group_id, CarGroup(group_id, name, tuple(models))))
        return group_id

    def get_car_groups(self, conn):
        return [g for _, _, g in sorted(self.store.groups, key=lambda t: (t[0], t[1]))]

    def create_master(self, conn, master):
        master.validate()
        master_id = self.store.next_id("master")
        self.store.masters[master_id] = replace(master, master_id=master_id)
        return master_id

    def get_masters(self, conn):
        return sorted(self.store.masters.values(), key=lambda m: m.name)

    def get_car(self, conn, car_id):
        return self.store.cars.get(car_id)

    def pricing_catalog(self, conn, car_id=None):
        car = self.get_car(conn, car_id) if car_id is not None else None
        return PricingCatalog.build(
            services=self.list_services(conn),
            cars=[car] if car else [],
            groups=self.get_car_groups(conn),
        )


class FakeOrderRepository:
    def __init__(self, store: Store) -> None:
        self.store = store

    def create(self, conn, order: NewServiceOrder):
        order_id = self.store.next_id("order")
        self.store.orders[order_id] = ServiceOrder(
            order_id=order_id,
            client_id=order.client_id,
            car_id=order.car_id,
            date=order.date,
            time=order.time,
            reason=order.reason,
            master_ids=tuple(order.master_ids),
            mileage=order.mileage,
        )
        return order_id

    def get(self, conn, order_id):
        return self.store.orders.get(order_id)

    def update_status(self, conn, *, order_id, status, end_date, is_stock_deducted):
        self.store.orders[order_id] = replace(
            self.store.orders[order_id], status=status, end_date=end_date, is_stock_deducted=is_stock_deducted
        )

    def set_masters(self, conn, *, order_id, master_ids):
        self.store.orders[order_id] = replace(self.store.orders[order_id], master_ids=tuple(master_ids))

    def list(self, conn, *, status=None, limit=50):
        rows = [o for o in self.store.orders.values() if status is None or o.status == status]
        rows.sort(key=lambda o: (o.date, o.order_id), reverse=True)
        return rows[:limit]

    def list_completed(self, conn, date_from, date_to):
        rows = [
            o for o in self.store.orders.values()
            if o.status == OrderStatus.COMPLETED and date_from <= o.date <= date_to
        ]
        return sorted(rows, key=lambda o: (o.date, o.order_id))

    def list_by_car(self, conn, car_id):
        return [o for o in self.list(conn, limit=10_000) if o.car_id == car_id]


class FakeDetailRepository:
    def __init__(self, store: Store) -> None:
        self.store = store

    def create(self, conn, *, order_id, service_id, quantity, cost, custom_name):
        detail_id = self.store.next_id("detail")
        self.store.details[detail_id] = OrderDetail(detail_id, order_id, service_id, quantity, cost, custom_name)
        return detail_id

    def delete(self, conn, *, detail_id):
        return self.store.details.pop(detail_id, None) is not None

    def list_for_order(self, conn, order_id):
        return [d for d in self.store.details.values() if d.order_id == order_id]

    def list_for_orders(self, conn, order_ids):
        ids = set(order_ids)
        return [d for d in self.store.details.values() if d.order_id in ids]


class FakeOrderPartRepository:
    def __init__(self, store: Store) -> None:
        self.store = store

    def add_part(self, conn, *, order_id, part):
        part_id = self.store.next_id("part")
        self.store.parts[part_id] = Part(
            part_id=part_id,
            order_id=order_id,
            name=part.name,
            price=part.price,
            quantity=part.quantity,
            status=part.status,
            part_number=part.part_number,
            supplier=part.supplier,
            warranty_months=part.warranty_months,
        )
        return part_id

    def delete(self, conn, *, part_id):
        return self.store.parts.pop(part_id, None) is not None

    def set_status(self, conn, *, part_ids, status):
        found = [part_id for part_id in part_ids if part_id in self.store.parts]
        for part_id in found:
            self.store.parts[part_id] = replace(self.store.parts[part_id], status=status)
        return len(found)

    def list_for_order(self, conn, order_id):
        return [p for p in self.store.parts.values() if p.order_id == order_id]

    def list_for_orders(self, conn, order_ids):
        ids = set(order_ids)
        return [p for p in self.store.parts.values() if p.order_id in ids]


class FakeLedgerRepository:
    def __init__(self, store: Store) -> None:
        self.store = store

    def append(self, conn, tx):
        tx_id = self.store.next_id("tx")
        self.store.transactions.append(replace(tx, id=tx_id))
        return tx_id

    def has_sale_for_order(self, conn, order_id):
        return any(t.order_id == order_id and t.type.value == "sale" for t in self.store.transactions)

    def list_all(self, conn):
        return sorted(self.store.transactions, key=lambda t: (t.date, t.id))

    def min_quantities(self, conn):
        return dict(self.store.thresholds)

    def set_min_quantity(self, conn, *, stock_key, min_quantity):
        self.store.thresholds[stock_key] = min_quantity


@pytest.fixture
def store():
    return Store()


@pytest.fixture
def db(store):
    return FakeDb(store)


@pytest.fixture
def workshop(store):
    return Workshop(
        client_repo=FakeClientRepository(store),
        car_repo=FakeCarRepository(store),
        order_repo=FakeOrderRepository(store),
        detail_repo=FakeDetailRepository(store),
        order_part_repo=FakeOrderPartRepository(store),
        ledger_repo=FakeLedgerRepository(store),
        catalog_repo=FakeCatalogRepository(store),
    )


@dataclass(frozen=True)
class Seed:
    client_id: int
    camry_id: int
    lada_id: int
    premium_group_id: int
    oil_change_id: int
    brakes_id: int
    ivan_id: int
    petr_id: int


@pytest.fixture
def seed(workshop):
    """One client, two cars, a premium group covering the Camry, two services and two masters."""
    conn = CONN
    client_id = workshop.client_repo.create(conn, first_name="Anna", last_name="Petrova", phone="+79990001122")
    camry_id = workshop.car_repo.create(
        conn, owner_id=client_id, make="Toyota", model="Camry", year=2019, license_plate="A123BC"
    )
    lada_id = workshop.car_repo.create(
        conn, owner_id=client_id, make="Lada", model="Vesta", year=2021, license_plate="B456EK"
    )
    premium_group_id = workshop.catalog_repo.create_car_group(
        conn, name="Premium", models=[CarModelSpec(make="TOYOTA", model="camry")]
    )
    oil_change_id = workshop.catalog_repo.create_service(
        conn,
        Service(
            service_id=0,
            name="Oil change",
            category="Maintenance",
            base_price=Decimal("100"),
            price_overrides={premium_group_id: Decimal("150")},
        ),
    )
    brakes_id = workshop.catalog_repo.create_service(
        conn, Service(service_id=0, name="Brake pads", category="Brakes", base_price=Decimal("200"))
    )
    ivan_id = workshop.catalog_repo.create_master(
        conn,
        Master(master_id=0, name="Ivan", specialization="Engine", commission_percentage=Decimal("40"),
               telegram_chat_id="1001"),
    )
    petr_id = workshop.catalog_repo.create_master(
        conn, Master(master_id=0, name="Petr", specialization="Chassis", commission_percentage=Decimal("50"))
    )
    return Seed(client_id, camry_id, lada_id, premium_group_id, oil_change_id, brakes_id, ivan_id, petr_id)


@pytest.fixture
def app_config():
    return AppConfig(
        name="Test Garage",
        log_level="DEBUG",
        db=DbConfig(host="localhost", port=5432, name="autoservice", user="test", password="test"),
        business=BusinessConfig(),
        telegram=TelegramConfig(bot_token="123:abc"),
        ai=AiConfig(),
    )


@pytest.fixture
def today():
    return date(2024, 5, 20)
