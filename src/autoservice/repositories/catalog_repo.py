from __future__ import annotations

from decimal import Decimal

from psycopg import Connection
from psycopg.types.json import Jsonb

from ..domain import Car, CarGroup, CarModelSpec, Master, Service
from ..pricing import PricingCatalog
from .car_repo import CarRepository


def _to_service(row: dict) -> Service:
    return Service(
        service_id=int(row["id"]),
        name=row["name"],
        category=row["category"],
        base_price=Decimal(row["base_price"]),
        price_overrides={int(k): Decimal(str(v)) for k, v in (row["price_overrides"] or {}).items()},
    )


def _to_group(row: dict) -> CarGroup:
    return CarGroup(
        group_id=int(row["id"]),
        name=row["name"],
        models=tuple(
            CarModelSpec(
                make=m["make"],
                model=m["model"],
                year_from=m.get("year_from"),
                year_to=m.get("year_to"),
            )
            for m in (row["models"] or [])
        ),
    )


def _to_master(row: dict) -> Master:
    return Master(
        master_id=int(row["id"]),
        name=row["name"],
        specialization=row["specialization"],
        commission_percentage=Decimal(row["commission_percentage"]),
        phone=row["phone"],
        telegram_chat_id=row["telegram_chat_id"],
    )


def _overrides_json(service: Service) -> Jsonb:
    return Jsonb({str(k): str(v) for k, v in service.price_overrides.items()})


class CatalogRepository:
    """Price list, car groups and masters. Writes validate the entity invariants first."""

    def __init__(self, car_repo: CarRepository | None = None) -> None:
        self.car_repo = car_repo or CarRepository()

    # --- services

    def create_service(self, conn: Connection, service: Service) -> int:
        service.validate()
        cur = conn.execute(
            """
            INSERT INTO service(name, category, base_price, price_overrides)
            VALUES (%s, %s, %s, %s)
            RETURNING id;
            """,
            (service.name, service.category, service.base_price, _overrides_json(service)),
        )
        return int(cur.fetchone()[0])

    def update_service(self, conn: Connection, service: Service) -> None:
        service.validate()
        conn.execute(
            """
            UPDATE service
            SET name = %s, category = %s, base_price = %s, price_overrides = %s
            WHERE id = %s;
            """,
            (service.name, service.category, service.base_price, _overrides_json(service), service.service_id),
        )

    def get_service(self, conn: Connection, service_id: int) -> Service | None:
        cur = conn.execute(
            "SELECT id, name, category, base_price, price_overrides FROM service WHERE id = %s;",
            (service_id,),
        )
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return _to_service(dict(zip(cols, row)))

    def list_services(self, conn: Connection) -> list[Service]:
        cur = conn.execute(
            "SELECT id, name, category, base_price, price_overrides FROM service ORDER BY category, name;"
        )
        cols = [d.name for d in cur.description]
        return [_to_service(dict(zip(cols, row))) for row in cur.fetchall()]

    # --- car groups

    def create_car_group(self, conn: Connection, *, name: str, models: list[CarModelSpec], position: int = 0) -> int:
        payload = [
            {"make": m.make, "model": m.model, "year_from": m.year_from, "year_to": m.year_to}
            for m in models
        ]
        cur = conn.execute(
            "INSERT INTO car_group(name, models, position) VALUES (%s, %s, %s) RETURNING id;",
            (name, Jsonb(payload), position),
        )
        return int(cur.fetchone()[0])

    def get_car_groups(self, conn: Connection) -> list[CarGroup]:
        cur = conn.execute("SELECT id, name, models FROM car_group ORDER BY position, id;")
        cols = [d.name for d in cur.description]
        return [_to_group(dict(zip(cols, row))) for row in cur.fetchall()]

    # --- masters

    def create_master(self, conn: Connection, master: Master) -> int:
        master.validate()
        cur = conn.execute(
            """
            INSERT INTO master(name, specialization, commission_percentage, phone, telegram_chat_id)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id;
            """,
            (master.name, master.specialization, master.commission_percentage, master.phone, master.telegram_chat_id),
        )
        return int(cur.fetchone()[0])

    def get_masters(self, conn: Connection) -> list[Master]:
        cur = conn.execute(
            """
            SELECT id, name, specialization, commission_percentage, phone, telegram_chat_id
            FROM master
            ORDER BY name;
            """
        )
        cols = [d.name for d in cur.description]
        return [_to_master(dict(zip(cols, row))) for row in cur.fetchall()]

    # --- snapshots

    def get_car(self, conn: Connection, car_id: int) -> Car | None:
        return self.car_repo.get(conn, car_id)

    def pricing_catalog(self, conn: Connection, car_id: int | None = None) -> PricingCatalog:
        car = self.get_car(conn, car_id) if car_id is not None else None
        return PricingCatalog.build(
            services=self.list_services(conn),
            cars=[car] if car else [],
            groups=self.get_car_groups(conn),
        )
