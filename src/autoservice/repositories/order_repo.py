from __future__ import annotations

from datetime import date

from psycopg import Connection

from ..domain import NewServiceOrder, OrderStatus, ServiceOrder

_COLUMNS = """
    id, client_id, car_id, order_date, end_date, order_time, mileage, reason,
    status, master_ids, is_stock_deducted
"""


def _to_order(row: dict) -> ServiceOrder:
    return ServiceOrder(
        order_id=int(row["id"]),
        client_id=int(row["client_id"]),
        car_id=int(row["car_id"]),
        date=row["order_date"],
        end_date=row["end_date"],
        time=row["order_time"],
        mileage=row["mileage"],
        reason=row["reason"],
        status=OrderStatus(row["status"]),
        master_ids=tuple(row["master_ids"] or ()),
        is_stock_deducted=bool(row["is_stock_deducted"]),
    )


class OrderRepository:
    def create(self, conn: Connection, order: NewServiceOrder) -> int:
        cur = conn.execute(
            """
            INSERT INTO service_order(client_id, car_id, order_date, order_time, mileage, reason,
                                      status, master_ids, is_stock_deducted)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, false)
            RETURNING id;
            """,
            (
                order.client_id,
                order.car_id,
                order.date,
                order.time,
                order.mileage,
                order.reason,
                OrderStatus.NEW.value,
                list(order.master_ids),
            ),
        )
        return int(cur.fetchone()[0])

    def get(self, conn: Connection, order_id: int) -> ServiceOrder | None:
        cur = conn.execute(f"SELECT {_COLUMNS} FROM service_order WHERE id = %s;", (order_id,))
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return _to_order(dict(zip(cols, row)))

    def update_status(
        self,
        conn: Connection,
        *,
        order_id: int,
        status: OrderStatus,
        end_date: date | None,
        is_stock_deducted: bool,
    ) -> None:
        conn.execute(
            """
            UPDATE service_order
            SET status = %s, end_date = %s, is_stock_deducted = %s
            WHERE id = %s;
            """,
            (status.value, end_date, is_stock_deducted, order_id),
        )

    def set_masters(self, conn: Connection, *, order_id: int, master_ids: list[int]) -> None:
        conn.execute(
            "UPDATE service_order SET master_ids = %s WHERE id = %s;",
            (master_ids, order_id),
        )

    def list(self, conn: Connection, *, status: OrderStatus | None = None, limit: int = 50) -> list[ServiceOrder]:
        if status is None:
            cur = conn.execute(
                f"SELECT {_COLUMNS} FROM service_order ORDER BY order_date DESC, id DESC LIMIT %s;",
                (limit,),
            )
        else:
            cur = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM service_order
                WHERE status = %s
                ORDER BY order_date DESC, id DESC
                LIMIT %s;
                """,
                (status.value, limit),
            )
        cols = [d.name for d in cur.description]
        return [_to_order(dict(zip(cols, row))) for row in cur.fetchall()]

    def list_completed(self, conn: Connection, date_from: date, date_to: date) -> list[ServiceOrder]:
        cur = conn.execute(
            f"""
            SELECT {_COLUMNS} FROM service_order
            WHERE status = %s AND order_date >= %s AND order_date <= %s
            ORDER BY order_date, id;
            """,
            (OrderStatus.COMPLETED.value, date_from, date_to),
        )
        cols = [d.name for d in cur.description]
        return [_to_order(dict(zip(cols, row))) for row in cur.fetchall()]

    def list_by_car(self, conn: Connection, car_id: int) -> list[ServiceOrder]:
        cur = conn.execute(
            f"SELECT {_COLUMNS} FROM service_order WHERE car_id = %s ORDER BY order_date DESC, id DESC;",
            (car_id,),
        )
        cols = [d.name for d in cur.description]
        return [_to_order(dict(zip(cols, row))) for row in cur.fetchall()]
