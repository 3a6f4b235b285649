from __future__ import annotations

from psycopg import Connection

from ..domain import Car

_COLUMNS = "id, owner_id, make, model, year, license_plate, vin"


def _to_car(row: dict) -> Car:
    return Car(
        car_id=int(row["id"]),
        owner_id=int(row["owner_id"]),
        make=row["make"],
        model=row["model"],
        year=row["year"],
        license_plate=row["license_plate"],
        vin=row["vin"],
    )


class CarRepository:
    def create(
        self,
        conn: Connection,
        *,
        owner_id: int,
        make: str,
        model: str,
        year: int | None,
        license_plate: str = "",
        vin: str = "",
    ) -> int:
        cur = conn.execute(
            """
            INSERT INTO car(owner_id, make, model, year, license_plate, vin)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING id;
            """,
            (owner_id, make, model, year, license_plate, vin),
        )
        return int(cur.fetchone()[0])

    def get(self, conn: Connection, car_id: int) -> Car | None:
        cur = conn.execute(f"SELECT {_COLUMNS} FROM car WHERE id = %s;", (car_id,))
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return _to_car(dict(zip(cols, row)))

    def list_by_owner(self, conn: Connection, owner_id: int) -> list[Car]:
        cur = conn.execute(
            f"SELECT {_COLUMNS} FROM car WHERE owner_id = %s ORDER BY id DESC;",
            (owner_id,),
        )
        cols = [d.name for d in cur.description]
        return [_to_car(dict(zip(cols, row))) for row in cur.fetchall()]

    def list_all(self, conn: Connection) -> list[Car]:
        cur = conn.execute(f"SELECT {_COLUMNS} FROM car ORDER BY id;")
        cols = [d.name for d in cur.description]
        return [_to_car(dict(zip(cols, row))) for row in cur.fetchall()]
