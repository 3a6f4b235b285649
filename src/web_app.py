from __future__ import annotations

from dataclasses import asdict, replace
from datetime import date
from decimal import Decimal, InvalidOperation

from flask import Flask, jsonify, request

from autoservice.analytics import PERIOD_NAMES, period_bounds, previous_period_bounds
from autoservice.config import AppConfig, ConfigError, load_config
from autoservice.db import Db
from autoservice.domain import (
    NewOrderDetail,
    NewServiceOrder,
    OrderStatus,
    ServiceOrder,
    TransactionLine,
    TransactionType,
)
from autoservice.errors import InvariantViolation, NotFound, PersistenceError, ValidationError
from autoservice.ledger import low_stock, make_transaction
from autoservice.live import recompute
from autoservice.logging_setup import configure_logging
from autoservice.notify import send_order_notification
from autoservice.pricing import resolve_price
from autoservice.reports import master_earnings, revenue_report
from autoservice.suggestions import GeminiSuggester, ServiceSuggester
from autoservice.wiring import Workshop


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def _order_json(o: ServiceOrder) -> dict:
    return {
        "order_id": o.order_id,
        "client_id": o.client_id,
        "car_id": o.car_id,
        "date": o.date.isoformat(),
        "end_date": o.end_date.isoformat() if o.end_date else None,
        "time": o.time,
        "mileage": o.mileage,
        "reason": o.reason,
        "status": o.status.value,
        "master_ids": list(o.master_ids),
        "is_stock_deducted": o.is_stock_deducted,
    }


def _parse_details(items: list[dict]) -> list[NewOrderDetail]:
    return [
        NewOrderDetail(
            service_id=int(d["service_id"]),
            quantity=int(d.get("quantity", 1)),
            cost=Decimal(str(d["cost"])) if d.get("cost") is not None else None,
            custom_name=d.get("custom_name"),
        )
        for d in items
    ]


def _body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def create_app(
    db: Db,
    cfg: AppConfig,
    workshop: Workshop | None = None,
    suggester: ServiceSuggester | None = None,
) -> Flask:
    app = Flask(__name__)
    ws = workshop or Workshop(markup_pct=cfg.business.parts_markup_pct)
    ai = suggester
    if ai is None and cfg.ai.api_key:
        ai = GeminiSuggester(cfg.ai.api_key, cfg.ai.model)

    @app.errorhandler(ValidationError)
    def _validation(e):
        return jsonify(error=str(e)), 400

    @app.errorhandler(NotFound)
    def _not_found(e):
        return jsonify(error=str(e)), 404

    @app.errorhandler(PersistenceError)
    def _persistence(e):
        app.logger.error("Database failure: %s", e)
        return jsonify(error="Database is unavailable, try again."), 503

    @app.errorhandler(InvariantViolation)
    def _invariant(e):
        app.logger.error("Data invariant broken: %s", e)
        return jsonify(error=str(e)), 500

    @app.errorhandler(KeyError)
    @app.errorhandler(ValueError)
    @app.errorhandler(InvalidOperation)
    def _bad_value(e):
        return jsonify(error=f"Invalid value: {e}"), 400

    @app.get("/")
    def index():
        return jsonify(status="healthy", service=cfg.name)

    @app.get("/orders")
    def orders_list():
        status = request.args.get("status")
        with db.session() as conn:
            rows = ws.order_repo.list(conn, status=OrderStatus(status) if status else None, limit=100)
        return jsonify(orders=[_order_json(o) for o in rows])

    @app.post("/orders")
    def orders_new():
        data = _body()
        new_order = NewServiceOrder(
            client_id=int(data["client_id"]),
            car_id=int(data["car_id"]),
            date=date.fromisoformat(data["date"]) if data.get("date") else date.today(),
            time=str(data.get("time", "")),
            reason=str(data.get("reason", "")),
            master_ids=tuple(int(m) for m in data.get("master_ids", [])),
            mileage=int(data["mileage"]) if data.get("mileage") is not None else None,
        )
        with db.transaction() as conn:
            order_id = ws.orders.create_order(conn, new_order, _parse_details(data.get("details", [])))
        return jsonify(order_id=order_id), 201

    @app.get("/orders/<int:order_id>")
    def orders_get(order_id: int):
        with db.session() as conn:
            card = ws.orders.get_order_card(conn, order_id)
        return jsonify(
            order=_order_json(card.order),
            details=[
                {"detail_id": d.detail_id, "service_id": d.service_id, "custom_name": d.custom_name,
                 "quantity": d.quantity, "cost": _money(d.cost)}
                for d in card.details
            ],
            parts=[
                {"part_id": p.part_id, "name": p.name, "part_number": p.part_number,
                 "price": _money(p.price), "quantity": p.quantity, "status": p.status.value}
                for p in card.parts
            ],
            totals={
                "services": _money(card.totals.services),
                "parts": _money(card.totals.parts),
                "final": _money(card.totals.final),
            },
        )

    @app.post("/orders/<int:order_id>/details")
    def orders_add_details(order_id: int):
        data = _body()
        with db.transaction() as conn:
            ids = ws.orders.add_details(conn, order_id, _parse_details(data.get("details", [])))
        return jsonify(detail_ids=ids), 201

    @app.post("/orders/<int:order_id>/status")
    def orders_status(order_id: int):
        data = _body()
        with db.transaction() as conn:
            order = ws.orders.transition_status(conn, order_id, OrderStatus(data["status"]))
        return jsonify(order=_order_json(order))

    @app.get("/price")
    def price():
        service_id = int(request.args["service_id"])
        car_id = request.args.get("car_id", type=int)
        with db.session() as conn:
            catalog = ws.catalog_repo.pricing_catalog(conn, car_id)
        quote = resolve_price(service_id, car_id, catalog)
        return jsonify(price=_money(quote.price), source=quote.source.value)

    @app.get("/inventory")
    def inventory():
        with db.session() as conn:
            items = ws.inventory.stock(conn)
        return jsonify(
            items=[
                {**asdict(i), "purchase_price": _money(i.purchase_price), "selling_price": _money(i.selling_price)}
                for i in items
            ]
        )

    @app.post("/inventory/transactions")
    def inventory_record():
        data = _body()
        lines = [
            TransactionLine(
                name=str(ln["name"]),
                part_number=ln.get("part_number"),
                quantity=int(ln["quantity"]),
                purchase_price=Decimal(str(ln["purchase_price"])),
                selling_price=Decimal(str(ln["selling_price"])) if ln.get("selling_price") is not None else None,
            )
            for ln in data.get("lines", [])
        ]
        tx = make_transaction(
            TransactionType(data["type"]),
            lines,
            doc_number=data.get("doc_number"),
            supplier=data.get("supplier"),
            notes=data.get("notes"),
        )
        if data.get("total_amount") is not None:
            tx = replace(tx, total_amount=Decimal(str(data["total_amount"])))
        with db.transaction() as conn:
            tx_id = ws.inventory.record_transaction(conn, tx)
        return jsonify(id=tx_id), 201

    @app.get("/analytics")
    def analytics():
        period = request.args.get("range", "this_month")
        if period not in PERIOD_NAMES:
            raise ValidationError(f"range must be one of {PERIOD_NAMES}")
        start, end = period_bounds(period, date.today())
        previous = previous_period_bounds(period, date.today())
        with db.session() as conn:
            rep = revenue_report(conn, ws.reports, start, end, compare=previous is not None, previous=previous)
        cur = rep.current
        return jsonify(
            start=start.isoformat(),
            end=end.isoformat(),
            order_count=cur.order_count,
            services_revenue=_money(cur.services_revenue),
            parts_revenue=_money(cur.parts_revenue),
            total_revenue=_money(cur.total_revenue),
            total_salaries=_money(cur.total_salaries),
            net_profit=_money(cur.net_profit),
            revenue_trend=f"{rep.revenue_trend:.1f}" if rep.revenue_trend is not None else None,
            profit_trend=f"{rep.profit_trend:.1f}" if rep.profit_trend is not None else None,
        )

    @app.get("/masters/stats")
    def masters_stats():
        start, end = period_bounds("all_time", date.today())
        with db.session() as conn:
            stats = master_earnings(conn, ws.reports, start, end)
        return jsonify(
            masters=[
                {"master_id": s.master_id, "total_earnings": _money(s.total_earnings),
                 "completed_orders": s.completed_orders}
                for s in stats.values()
            ]
        )

    @app.post("/orders/<int:order_id>/notify")
    def orders_notify(order_id: int):
        with db.session() as conn:
            card = ws.orders.get_order_card(conn, order_id)
            car = ws.car_repo.get(conn, card.order.car_id)
            names = {s.service_id: s.name for s in ws.catalog_repo.list_services(conn)}
            masters = {m.master_id: m for m in ws.catalog_repo.get_masters(conn)}
        if car is None:
            raise NotFound(f"Car {card.order.car_id} not found.")

        lines = [(d, d.custom_name or names.get(d.service_id, f"#{d.service_id}")) for d in card.details]
        data = request.get_json(silent=True) or {}
        results = [
            {
                "master_id": master_id,
                "sent": send_order_notification(
                    cfg.telegram.bot_token, masters[master_id], card.order, car, lines, data.get("schematic_url")
                ),
            }
            for master_id in card.order.master_ids
            if master_id in masters
        ]
        return jsonify(results=results)

    @app.get("/suggestions")
    def suggestions():
        mileage = int(request.args.get("mileage", 0))
        complaints = request.args.get("complaints", "")
        items = ai.suggest_services(mileage, complaints) if ai is not None else []
        return jsonify(suggestions=[{"service_name": s.service_name, "reason": s.reason} for s in items])

    @app.get("/dashboard")
    def dashboard():
        with db.session() as conn:
            state = recompute(ws.snapshots.load(conn))
        return jsonify(
            orders=[
                {"order_id": order_id, "final": _money(t.final)}
                for order_id, t in state.order_totals.items()
            ],
            commissions=[
                {"order_id": order_id, "master_id": master_id, "amount": _money(amount)}
                for order_id, by_master in state.commissions.items()
                for master_id, amount in by_master.items()
            ],
            low_stock=[{"id": i.id, "name": i.name, "quantity": i.quantity} for i in low_stock(state.stock)],
        )

    return app


if __name__ == "__main__":
    try:
        cfg = load_config()
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}")
        raise SystemExit(2)
    configure_logging(cfg.log_level)
    create_app(Db(cfg.db), cfg).run(debug=True, host="127.0.0.1", port=5000)
