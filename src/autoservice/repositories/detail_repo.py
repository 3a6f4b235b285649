from __future__ import annotations

from decimal import Decimal

from psycopg import Connection

from ..domain import OrderDetail

_COLUMNS = "id, order_id, service_id, custom_name, quantity, cost"


def _to_detail(row: dict) -> OrderDetail:
    return OrderDetail(
        detail_id=int(row["id"]),
        order_id=int(row["order_id"]),
        service_id=int(row["service_id"]),
        custom_name=row["custom_name"],
        quantity=int(row["quantity"]),
        cost=Decimal(row["cost"]),
    )


class DetailRepository:
    def create(
        self,
        conn: Connection,
        *,
        order_id: int,
        service_id: int,
        quantity: int,
        cost: Decimal,
        custom_name: str | None,
    ) -> int:
        cur = conn.execute(
            """
            INSERT INTO order_detail(order_id, service_id, custom_name, quantity, cost)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id;
            """,
            (order_id, service_id, custom_name, quantity, cost),
        )
        return int(cur.fetchone()[0])

    def delete(self, conn: Connection, *, detail_id: int) -> bool:
        cur = conn.execute("DELETE FROM order_detail WHERE id = %s;", (detail_id,))
        return cur.rowcount == 1

    def list_for_order(self, conn: Connection, order_id: int) -> list[OrderDetail]:
        cur = conn.execute(
            f"SELECT {_COLUMNS} FROM order_detail WHERE order_id = %s ORDER BY id;",
            (order_id,),
        )
        cols = [d.name for d in cur.description]
        return [_to_detail(dict(zip(cols, row))) for row in cur.fetchall()]

    def list_for_orders(self, conn: Connection, order_ids: list[int]) -> list[OrderDetail]:
        if not order_ids:
            return []
        cur = conn.execute(
            f"SELECT {_COLUMNS} FROM order_detail WHERE order_id = ANY(%s) ORDER BY order_id, id;",
            (order_ids,),
        )
        cols = [d.name for d in cur.description]
        return [_to_detail(dict(zip(cols, row))) for row in cur.fetchall()]
