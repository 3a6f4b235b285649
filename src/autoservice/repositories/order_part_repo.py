from __future__ import annotations

from decimal import Decimal

from psycopg import Connection

from ..domain import NewPart, Part, PartStatus

_COLUMNS = "id, order_id, name, part_number, supplier, price, quantity, status, warranty_months"


def _to_part(row: dict) -> Part:
    return Part(
        part_id=int(row["id"]),
        order_id=int(row["order_id"]),
        name=row["name"],
        part_number=row["part_number"],
        supplier=row["supplier"],
        price=Decimal(row["price"]),
        quantity=int(row["quantity"]),
        status=PartStatus(row["status"]),
        warranty_months=row["warranty_months"],
    )


class OrderPartRepository:
    def add_part(self, conn: Connection, *, order_id: int, part: NewPart) -> int:
        cur = conn.execute(
            """
            INSERT INTO order_part(order_id, name, part_number, supplier, price, quantity, status, warranty_months)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id;
            """,
            (
                order_id,
                part.name,
                part.part_number,
                part.supplier,
                part.price,
                part.quantity,
                part.status.value,
                part.warranty_months,
            ),
        )
        return int(cur.fetchone()[0])

    def delete(self, conn: Connection, *, part_id: int) -> bool:
        cur = conn.execute("DELETE FROM order_part WHERE id = %s;", (part_id,))
        return cur.rowcount == 1

    def set_status(self, conn: Connection, *, part_ids: list[int], status: PartStatus) -> int:
        """Returns the number of rows updated."""
        if not part_ids:
            return 0
        cur = conn.execute(
            "UPDATE order_part SET status = %s WHERE id = ANY(%s);",
            (status.value, part_ids),
        )
        return cur.rowcount

    def list_for_order(self, conn: Connection, order_id: int) -> list[Part]:
        cur = conn.execute(
            f"SELECT {_COLUMNS} FROM order_part WHERE order_id = %s ORDER BY id;",
            (order_id,),
        )
        cols = [d.name for d in cur.description]
        return [_to_part(dict(zip(cols, row))) for row in cur.fetchall()]

    def list_for_orders(self, conn: Connection, order_ids: list[int]) -> list[Part]:
        if not order_ids:
            return []
        cur = conn.execute(
            f"SELECT {_COLUMNS} FROM order_part WHERE order_id = ANY(%s) ORDER BY order_id, id;",
            (order_ids,),
        )
        cols = [d.name for d in cur.description]
        return [_to_part(dict(zip(cols, row))) for row in cur.fetchall()]
