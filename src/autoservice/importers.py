from __future__ import annotations

import csv
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path

from psycopg import Connection

from .domain import ExtractedPart, Service
from .ledger import to_cents
from .repositories.catalog_repo import CatalogRepository


class ImportFileError(Exception):
    pass


def _money(raw: object, what: str) -> Decimal:
    try:
        return to_cents(Decimal(str(raw).strip().replace(",", ".")))
    except (InvalidOperation, ValueError) as e:
        raise ImportFileError(f"Invalid {what}: {raw!r}") from e


def import_price_list_csv(conn: Connection, path: str | Path, catalog_repo: CatalogRepository) -> int:
    """
    Columns: name, category, base_price; any extra column named group:<id>
    holds the override price for that car group (blank = no override).
    """
    p = Path(path)
    if not p.exists():
        raise ImportFileError(f"File not found: {p}")

    count = 0
    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        required = {"name", "category", "base_price"}
        fields = set(reader.fieldnames or [])
        if not required.issubset(fields):
            raise ImportFileError(f"CSV must contain columns: {sorted(required)}")
        group_columns = {c: int(c.split(":", 1)[1]) for c in fields if c.startswith("group:")}

        for row in reader:
            name = (row.get("name") or "").strip()
            if not name:
                continue
            overrides = {
                group_id: _money(row[col], f"override for {name}")
                for col, group_id in group_columns.items()
                if (row.get(col) or "").strip()
            }
            service = Service(
                service_id=0,
                name=name,
                category=(row.get("category") or "").strip(),
                base_price=_money(row.get("base_price"), f"base price for {name}"),
                price_overrides=overrides,
            )
            catalog_repo.create_service(conn, service)
            count += 1
    return count


def load_invoice_json(path: str | Path) -> list[ExtractedPart]:
    """Supplier invoice lines at cost: [{"name", "partNumber"?, "quantity", "price"}]."""
    p = Path(path)
    if not p.exists():
        raise ImportFileError(f"File not found: {p}")

    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ImportFileError(f"Invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise ImportFileError("JSON must be a list of objects")

    parts = []
    for obj in data:
        if not isinstance(obj, dict):
            continue
        name = str(obj.get("name", "")).strip()
        if not name:
            continue
        try:
            quantity = int(obj.get("quantity", 1))
        except (TypeError, ValueError) as e:
            raise ImportFileError(f"Invalid quantity for {name}") from e
        parts.append(
            ExtractedPart(
                name=name,
                part_number=(str(obj["partNumber"]).strip() or None) if obj.get("partNumber") else None,
                quantity=quantity,
                price=_money(obj.get("price", 0), f"price for {name}"),
            )
        )
    return parts
