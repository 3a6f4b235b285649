from __future__ import annotations

import logging
from typing import Sequence

from psycopg import Connection

from ..domain import InventoryItem, TransactionLine, TransactionType, WarehouseTransaction
from ..ledger import low_stock, make_transaction, project_stock, validate_transaction
from ..repositories.ledger_repo import LedgerRepository

logger = logging.getLogger(__name__)


class InventoryService:
    def __init__(self, *, ledger_repo: LedgerRepository) -> None:
        self.ledger_repo = ledger_repo

    def record_transaction(self, conn: Connection, tx: WarehouseTransaction) -> int:
        validate_transaction(tx)
        tx_id = self.ledger_repo.append(conn, tx)
        logger.info(
            "Recorded %s transaction #%s: %d line(s), total=%s, order=%s",
            tx.type.value, tx_id, len(tx.lines), tx.total_amount, tx.order_id,
        )
        return tx_id

    def receive_arrival(
        self,
        conn: Connection,
        *,
        lines: Sequence[TransactionLine],
        supplier: str | None,
        doc_number: str | None,
        notes: str | None = None,
    ) -> int:
        tx = make_transaction(
            TransactionType.ARRIVAL, lines, supplier=supplier, doc_number=doc_number, notes=notes
        )
        return self.record_transaction(conn, tx)

    def adjust(self, conn: Connection, *, lines: Sequence[TransactionLine], notes: str) -> int:
        tx = make_transaction(TransactionType.ADJUSTMENT, lines, notes=notes)
        return self.record_transaction(conn, tx)

    def stock(self, conn: Connection) -> list[InventoryItem]:
        return project_stock(self.ledger_repo.list_all(conn), self.ledger_repo.min_quantities(conn))

    def low_stock(self, conn: Connection) -> list[InventoryItem]:
        return low_stock(self.stock(conn))
