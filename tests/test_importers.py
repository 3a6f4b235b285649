import json
from decimal import Decimal

import pytest

from autoservice.importers import ImportFileError, import_price_list_csv, load_invoice_json

from conftest import CONN


class TestPriceListImport:
    def test_imports_services_with_group_overrides(self, tmp_path, workshop, seed):
        csv_path = tmp_path / "prices.csv"
        csv_path.write_text(
            "name,category,base_price,group:%d\n"
            "Wheel alignment,Chassis,\"2500,50\",3000\n"
            "Tyre change,Wheels,800,\n"
            ",Skipped,1,\n" % seed.premium_group_id,
            encoding="utf-8",
        )

        assert import_price_list_csv(CONN, csv_path, workshop.catalog_repo) == 2

        by_name = {s.name: s for s in workshop.catalog_repo.list_services(CONN)}
        assert by_name["Wheel alignment"].base_price == Decimal("2500.50")
        assert by_name["Wheel alignment"].price_overrides == {seed.premium_group_id: Decimal("3000.00")}
        assert by_name["Tyre change"].price_overrides == {}

    def test_missing_columns(self, tmp_path, workshop):
        csv_path = tmp_path / "prices.csv"
        csv_path.write_text("name,price\nX,1\n", encoding="utf-8")
        with pytest.raises(ImportFileError, match="columns"):
            import_price_list_csv(CONN, csv_path, workshop.catalog_repo)

    def test_bad_price(self, tmp_path, workshop):
        csv_path = tmp_path / "prices.csv"
        csv_path.write_text("name,category,base_price\nX,Y,cheap\n", encoding="utf-8")
        with pytest.raises(ImportFileError, match="base price"):
            import_price_list_csv(CONN, csv_path, workshop.catalog_repo)

    def test_missing_file(self, tmp_path, workshop):
        with pytest.raises(ImportFileError):
            import_price_list_csv(CONN, tmp_path / "none.csv", workshop.catalog_repo)


class TestInvoiceJson:
    def test_parses_lines(self, tmp_path):
        path = tmp_path / "invoice.json"
        path.write_text(
            json.dumps(
                [
                    {"name": "Brake pads", "partNumber": "BP-1", "quantity": 2, "price": 100},
                    {"name": "Bulb", "price": "2,5"},
                    {"name": ""},
                    "noise",
                ]
            ),
            encoding="utf-8",
        )
        parts = load_invoice_json(path)

        assert [(p.name, p.part_number, p.quantity, p.price) for p in parts] == [
            ("Brake pads", "BP-1", 2, Decimal("100.00")),
            ("Bulb", None, 1, Decimal("2.50")),
        ]

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "invoice.json"
        path.write_text('{"name": "x"}', encoding="utf-8")
        with pytest.raises(ImportFileError):
            load_invoice_json(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "invoice.json"
        path.write_text("[{", encoding="utf-8")
        with pytest.raises(ImportFileError, match="Invalid JSON"):
            load_invoice_json(path)
