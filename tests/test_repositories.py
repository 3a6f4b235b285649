from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

from autoservice.domain import CarModelSpec, PartStatus, TransactionLine, TransactionType
from autoservice.repositories.catalog_repo import CatalogRepository, _to_group, _to_service
from autoservice.repositories.ledger_repo import LedgerRepository
from autoservice.repositories.order_part_repo import OrderPartRepository


class StubCursor:
    def __init__(self, cols=(), rows=(), rowcount=0):
        self.description = [SimpleNamespace(name=c) for c in cols]
        self.rows = list(rows)
        self.rowcount = rowcount

    def fetchall(self):
        return self.rows

    def fetchone(self):
        return self.rows[0] if self.rows else None


class StubConnection:
    """Answers every execute() with the same cursor and records the statements."""

    def __init__(self, cursor: StubCursor):
        self.cursor = cursor
        self.executed = []

    def execute(self, sql, params=None):
        self.executed.append((sql, params))
        return self.cursor


LEDGER_COLS = (
    "id", "tx_date", "tx_type", "doc_number", "supplier", "order_id", "notes", "total_amount",
    "name", "part_number", "quantity", "purchase_price", "selling_price",
)
T0 = datetime(2024, 5, 1, 9, 0)
T1 = datetime(2024, 5, 2, 9, 0)


class TestCatalogRows:
    def test_service_overrides_from_jsonb(self):
        service = _to_service(
            {
                "id": 5,
                "name": "Oil change",
                "category": "Maintenance",
                "base_price": Decimal("100.00"),
                "price_overrides": {"3": "150.00", "7": 90},
            }
        )
        assert service.service_id == 5
        assert service.base_price == Decimal("100.00")
        assert service.price_overrides == {3: Decimal("150.00"), 7: Decimal("90")}

    def test_service_without_overrides(self):
        service = _to_service(
            {"id": 1, "name": "Wash", "category": "Body", "base_price": Decimal("10"), "price_overrides": None}
        )
        assert service.price_overrides == {}

    def test_group_models(self):
        group = _to_group(
            {
                "id": 2,
                "name": "Premium",
                "models": [
                    {"make": "Toyota", "model": "Camry", "year_from": 2015, "year_to": None},
                    {"make": "BMW", "model": "X5"},
                ],
            }
        )
        assert group.group_id == 2
        assert group.models == (
            CarModelSpec(make="Toyota", model="Camry", year_from=2015),
            CarModelSpec(make="BMW", model="X5"),
        )

    def test_group_without_models(self):
        assert _to_group({"id": 1, "name": "Empty", "models": None}).models == ()

    def test_list_services_maps_columns_by_name(self):
        cur = StubCursor(
            cols=("id", "name", "category", "base_price", "price_overrides"),
            rows=[(1, "Brake pads", "Brakes", Decimal("200.00"), {})],
        )
        [service] = CatalogRepository().list_services(StubConnection(cur))
        assert service.name == "Brake pads"
        assert service.category == "Brakes"

    def test_missing_service(self):
        cur = StubCursor(cols=("id", "name", "category", "base_price", "price_overrides"))
        assert CatalogRepository().get_service(StubConnection(cur), 9) is None


class TestLedgerRows:
    def test_lines_grouped_under_their_transaction(self):
        rows = [
            (1, T0, "arrival", "INV-1", "Parts LLC", None, None, Decimal("50.00"),
             "Oil filter", "OF-1", 2, Decimal("10.00"), Decimal("13.00")),
            (1, T0, "arrival", "INV-1", "Parts LLC", None, None, Decimal("50.00"),
             "Pads", None, 1, Decimal("30.00"), None),
            (2, T1, "sale", None, None, 7, "order 7", Decimal("10.00"),
             "Oil filter", "OF-1", 1, Decimal("10.00"), None),
        ]
        arrival, sale = LedgerRepository().list_all(StubConnection(StubCursor(LEDGER_COLS, rows)))

        assert arrival.id == 1
        assert arrival.type == TransactionType.ARRIVAL
        assert arrival.supplier == "Parts LLC"
        assert arrival.total_amount == Decimal("50.00")
        assert arrival.lines == (
            TransactionLine(name="Oil filter", quantity=2, purchase_price=Decimal("10.00"),
                            part_number="OF-1", selling_price=Decimal("13.00")),
            TransactionLine(name="Pads", quantity=1, purchase_price=Decimal("30.00")),
        )
        assert sale.type == TransactionType.SALE
        assert sale.order_id == 7
        assert sale.date == T1
        assert len(sale.lines) == 1

    def test_empty_ledger(self):
        assert LedgerRepository().list_all(StubConnection(StubCursor(LEDGER_COLS))) == []

    def test_min_quantities(self):
        cur = StubCursor(rows=[("of-1", 2), ("bp-2", 5)])
        assert LedgerRepository().min_quantities(StubConnection(cur)) == {"of-1": 2, "bp-2": 5}


class TestOrderPartStatus:
    def test_returns_updated_row_count(self):
        conn = StubConnection(StubCursor(rowcount=1))
        assert OrderPartRepository().set_status(conn, part_ids=[4], status=PartStatus.RECEIVED) == 1
        [(_, params)] = conn.executed
        assert params == ("received", [4])

    def test_no_ids_skips_the_query(self):
        conn = StubConnection(StubCursor())
        assert OrderPartRepository().set_status(conn, part_ids=[], status=PartStatus.RECEIVED) == 0
        assert conn.executed == []
