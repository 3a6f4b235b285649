from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation

from .analytics import PERIOD_NAMES, period_bounds, previous_period_bounds
from .config import AppConfig
from .db import Db
from .domain import NewOrderDetail, NewServiceOrder, OrderStatus
from .errors import InvariantViolation, NotFound, PersistenceError, ValidationError
from .importers import ImportFileError, import_price_list_csv, load_invoice_json
from .ledger import low_stock
from .live import ChangeListener, DerivedState
from .pricing import resolve_price
from .reports import master_earnings, revenue_report
from .wiring import Workshop

logger = logging.getLogger(__name__)


def _prompt(msg: str) -> str:
    return input(msg).strip()


def _fmt(value: Decimal) -> str:
    return f"{value:.2f}"


def _print_state(state: DerivedState) -> None:
    total = sum((t.final for t in state.order_totals.values()), Decimal(0))
    salaries = sum((sum(c.values(), Decimal(0)) for c in state.commissions.values()), Decimal(0))
    low = low_stock(state.stock)
    print(
        f"[live] orders={len(state.order_totals)} total={_fmt(total)} "
        f"salaries={_fmt(salaries)} low_stock={len(low)}"
    )


def run_cli(db: Db, cfg: AppConfig) -> None:
    ws = Workshop(markup_pct=cfg.business.parts_markup_pct)

    while True:
        print(f"\n=== {cfg.name} ===")
        print("1) List orders")
        print("2) Create order")
        print("3) Add services to order")
        print("4) Change order status")
        print("5) Stock balances")
        print("6) Analytics")
        print("7) Master earnings")
        print("8) Import price list CSV")
        print("9) Receive supplier invoice JSON into order")
        print("10) Watch live totals (Ctrl+C to stop)")
        print("0) Exit")

        choice = _prompt("> ")
        try:
            if choice == "0":
                return

            elif choice == "1":
                with db.session() as conn:
                    orders = ws.order_repo.list(conn, limit=50)
                for o in orders:
                    print(f"#{o.order_id} {o.date} {o.status.value} car={o.car_id} masters={list(o.master_ids)}")

            elif choice == "2":
                client_id = int(_prompt("client_id: "))
                car_id = int(_prompt("car_id: "))
                reason = _prompt("reason: ")
                mileage_in = _prompt("mileage (optional): ")
                masters_in = _prompt("master ids, comma separated (optional): ")
                master_ids = tuple(int(m) for m in masters_in.split(",") if m.strip())

                details: list[NewOrderDetail] = []
                with db.session() as conn:
                    catalog = ws.catalog_repo.pricing_catalog(conn, car_id)
                while True:
                    add = _prompt("Add service? (y/n): ").lower()
                    if add != "y":
                        break
                    service_id = int(_prompt("  service_id: "))
                    qty = int(_prompt("  quantity: ") or "1")
                    quote = resolve_price(service_id, car_id, catalog)
                    print(f"  price {_fmt(quote.price)} ({quote.source.value})")
                    details.append(NewOrderDetail(service_id=service_id, quantity=qty))

                new_order = NewServiceOrder(
                    client_id=client_id,
                    car_id=car_id,
                    date=date.today(),
                    time=_prompt("time (HH:MM): ") or "09:00",
                    reason=reason,
                    master_ids=master_ids,
                    mileage=int(mileage_in) if mileage_in else None,
                )
                with db.transaction() as conn:
                    order_id = ws.orders.create_order(conn, new_order, details)
                print(f"Created order_id={order_id}")

            elif choice == "3":
                order_id = int(_prompt("order_id: "))
                service_id = int(_prompt("service_id: "))
                qty = int(_prompt("quantity: ") or "1")
                with db.transaction() as conn:
                    ids = ws.orders.add_details(conn, order_id, [NewOrderDetail(service_id=service_id, quantity=qty)])
                print(f"Added detail ids={ids}")

            elif choice == "4":
                order_id = int(_prompt("order_id: "))
                print("Statuses: " + ", ".join(s.value for s in OrderStatus))
                status = OrderStatus(_prompt("new status: "))
                with db.transaction() as conn:
                    order = ws.orders.transition_status(conn, order_id, status)
                print(
                    f"Order #{order.order_id} is {order.status.value}, "
                    f"end_date={order.end_date}, stock_deducted={order.is_stock_deducted}"
                )

            elif choice == "5":
                with db.session() as conn:
                    items = ws.inventory.stock(conn)
                for i in items:
                    flag = " LOW" if i.min_quantity is not None and i.quantity <= i.min_quantity else ""
                    print(f"{i.name} [{i.part_number or '-'}] qty={i.quantity} avg_cost={_fmt(i.purchase_price)}{flag}")

            elif choice == "6":
                period = _prompt(f"period {PERIOD_NAMES}: ") or "this_month"
                start, end = period_bounds(period, date.today())
                previous = previous_period_bounds(period, date.today())
                with db.session() as conn:
                    rep = revenue_report(conn, ws.reports, start, end, compare=previous is not None, previous=previous)
                cur = rep.current
                print(f"{start}..{end}: orders={cur.order_count}")
                print(f"  services={_fmt(cur.services_revenue)} parts={_fmt(cur.parts_revenue)}")
                print(f"  salaries={_fmt(cur.total_salaries)} net_profit={_fmt(cur.net_profit)}")
                if rep.revenue_trend is not None:
                    print(f"  revenue trend {rep.revenue_trend:+.1f}%  profit trend {rep.profit_trend:+.1f}%")

            elif choice == "7":
                start, end = period_bounds("all_time", date.today())
                with db.session() as conn:
                    stats = master_earnings(conn, ws.reports, start, end)
                    masters = {m.master_id: m for m in ws.catalog_repo.get_masters(conn)}
                for master_id, s in stats.items():
                    print(f"{masters[master_id].name}: earned={_fmt(s.total_earnings)} orders={s.completed_orders}")

            elif choice == "8":
                path = _prompt("path to price list .csv: ")
                with db.transaction() as conn:
                    n = import_price_list_csv(conn, path, ws.catalog_repo)
                print(f"Imported services: {n}")

            elif choice == "9":
                order_id = int(_prompt("order_id: "))
                path = _prompt("path to invoice .json: ")
                supplier = _prompt("supplier: ") or None
                doc_number = _prompt("invoice number: ") or None
                stock_in = _prompt("add to stock? (y/n): ").lower() != "n"
                parts = load_invoice_json(path)
                with db.transaction() as conn:
                    ids = ws.orders.receive_invoice_parts(
                        conn, order_id, parts, supplier=supplier, doc_number=doc_number, add_to_inventory=stock_in
                    )
                print(f"Added parts: {ids}")

            elif choice == "10":
                try:
                    ChangeListener(db, ws.snapshots, _print_state).run()
                except KeyboardInterrupt:
                    print("\nStopped watching.")

            else:
                print("Unknown choice.")

        except ValidationError as e:
            print(f"[INPUT ERROR] {e}")
        except NotFound as e:
            print(f"[NOT FOUND] {e}")
        except ImportFileError as e:
            print(f"[IMPORT ERROR] {e}")
        except PersistenceError as e:
            logger.error("Database failure: %s", e)
            print(f"[DB ERROR] {e}")
        except InvariantViolation as e:
            logger.error("Data invariant broken: %s", e)
            print(f"[DATA ERROR] {e}")
        except (ValueError, InvalidOperation) as e:
            print(f"[VALUE ERROR] {e}")
