from __future__ import annotations

from psycopg import Connection

from ..domain import Client


def _to_client(row: dict) -> Client:
    return Client(
        client_id=int(row["id"]),
        first_name=row["first_name"],
        last_name=row["last_name"],
        phone=row["phone"],
        notes=row["notes"],
    )


class ClientRepository:
    def create(self, conn: Connection, *, first_name: str, last_name: str, phone: str, notes: str = "") -> int:
        cur = conn.execute(
            """
            INSERT INTO client(first_name, last_name, phone, notes)
            VALUES (%s, %s, %s, %s)
            RETURNING id;
            """,
            (first_name, last_name, phone, notes),
        )
        return int(cur.fetchone()[0])

    def get(self, conn: Connection, client_id: int) -> Client | None:
        cur = conn.execute(
            "SELECT id, first_name, last_name, phone, notes FROM client WHERE id = %s;",
            (client_id,),
        )
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return _to_client(dict(zip(cols, row)))

    def list(self, conn: Connection, limit: int = 50) -> list[Client]:
        cur = conn.execute(
            """
            SELECT id, first_name, last_name, phone, notes
            FROM client
            ORDER BY id DESC
            LIMIT %s;
            """,
            (limit,),
        )
        cols = [d.name for d in cur.description]
        return [_to_client(dict(zip(cols, row))) for row in cur.fetchall()]
