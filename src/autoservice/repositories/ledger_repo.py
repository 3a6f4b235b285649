from __future__ import annotations

from decimal import Decimal

from psycopg import Connection

from ..domain import TransactionLine, TransactionType, WarehouseTransaction


class LedgerRepository:
    """Append-only storage for warehouse transactions. There is no update or delete."""

    def append(self, conn: Connection, tx: WarehouseTransaction) -> int:
        cur = conn.execute(
            """
            INSERT INTO warehouse_transaction(tx_date, tx_type, doc_number, supplier, order_id, notes, total_amount)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING id;
            """,
            (tx.date, tx.type.value, tx.doc_number, tx.supplier, tx.order_id, tx.notes, tx.total_amount),
        )
        tx_id = int(cur.fetchone()[0])

        with conn.cursor() as lines_cur:
            lines_cur.executemany(
                """
                INSERT INTO warehouse_transaction_line(
                    transaction_id, line_no, name, part_number, quantity, purchase_price, selling_price)
                VALUES (%s, %s, %s, %s, %s, %s, %s);
                """,
                [
                    (tx_id, n, ln.name, ln.part_number, ln.quantity, ln.purchase_price, ln.selling_price)
                    for n, ln in enumerate(tx.lines)
                ],
            )
        return tx_id

    def has_sale_for_order(self, conn: Connection, order_id: int) -> bool:
        cur = conn.execute(
            "SELECT 1 FROM warehouse_transaction WHERE order_id = %s AND tx_type = %s LIMIT 1;",
            (order_id, TransactionType.SALE.value),
        )
        return cur.fetchone() is not None

    def list_all(self, conn: Connection) -> list[WarehouseTransaction]:
        cur = conn.execute(
            """
            SELECT t.id, t.tx_date, t.tx_type, t.doc_number, t.supplier, t.order_id, t.notes, t.total_amount,
                   l.name, l.part_number, l.quantity, l.purchase_price, l.selling_price
            FROM warehouse_transaction t
            JOIN warehouse_transaction_line l ON l.transaction_id = t.id
            ORDER BY t.tx_date, t.id, l.line_no;
            """
        )
        cols = [d.name for d in cur.description]

        headers: dict[int, dict] = {}
        lines: dict[int, list[TransactionLine]] = {}
        for row in cur.fetchall():
            r = dict(zip(cols, row))
            tx_id = int(r["id"])
            headers.setdefault(tx_id, r)
            lines.setdefault(tx_id, []).append(
                TransactionLine(
                    name=r["name"],
                    part_number=r["part_number"],
                    quantity=int(r["quantity"]),
                    purchase_price=Decimal(r["purchase_price"]),
                    selling_price=Decimal(r["selling_price"]) if r["selling_price"] is not None else None,
                )
            )

        return [
            WarehouseTransaction(
                id=tx_id,
                date=h["tx_date"],
                type=TransactionType(h["tx_type"]),
                doc_number=h["doc_number"],
                supplier=h["supplier"],
                order_id=h["order_id"],
                notes=h["notes"],
                total_amount=Decimal(h["total_amount"]),
                lines=tuple(lines[tx_id]),
            )
            for tx_id, h in headers.items()
        ]

    def min_quantities(self, conn: Connection) -> dict[str, int]:
        cur = conn.execute("SELECT stock_key, min_quantity FROM stock_threshold;")
        return {key: int(qty) for key, qty in cur.fetchall()}

    def set_min_quantity(self, conn: Connection, *, stock_key: str, min_quantity: int) -> None:
        conn.execute(
            """
            INSERT INTO stock_threshold(stock_key, min_quantity) VALUES (%s, %s)
            ON CONFLICT (stock_key) DO UPDATE SET min_quantity = EXCLUDED.min_quantity;
            """,
            (stock_key, min_quantity),
        )
