from __future__ import annotations

import logging
from typing import Sequence

import requests

from .domain import Car, Master, OrderDetail, ServiceOrder

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org/bot{token}/{method}"
DEFAULT_TIMEOUT = 15.0

# Entities of Telegram's legacy Markdown parse mode.
_MARKDOWN_SPECIAL = "_*`["


def _md(value: object) -> str:
    return "".join("\\" + ch if ch in _MARKDOWN_SPECIAL else ch for ch in str(value))


def format_order_message(
    master: Master,
    order: ServiceOrder,
    car: Car,
    lines: Sequence[tuple[OrderDetail, str]],
) -> str:
    works = "\n".join(f"• {_md(name)} ({d.quantity} pcs)" for d, name in lines) or "-"
    mileage = f"{order.mileage} km" if order.mileage is not None else "not specified"
    return "\n".join(
        [
            "*NEW JOB*",
            "",
            f"*Master:* {_md(master.name)}",
            f"*Car:* {_md(car.make)} {_md(car.model)}",
            f"*Plate:* {_md(car.license_plate)}",
            f"*Date:* {order.date:%d.%m.%Y} {_md(order.time)}",
            f"*Mileage:* {mileage}",
            "",
            f"*Reason:* {_md(order.reason)}",
            "",
            "*Work list:*",
            works,
            "",
            f"*Order:* #{order.order_id}",
        ]
    )


def send_order_notification(
    bot_token: str | None,
    master: Master,
    order: ServiceOrder,
    car: Car,
    lines: Sequence[tuple[OrderDetail, str]],
    schematic_url: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> bool:
    """Send the job card to the master's Telegram chat. Returns True when Telegram accepted it."""
    if not bot_token or not master.telegram_chat_id:
        return False

    text = format_order_message(master, order, car, lines)
    body = {"chat_id": master.telegram_chat_id, "parse_mode": "Markdown"}
    if schematic_url:
        method = "sendPhoto"
        body.update(photo=schematic_url, caption=text)
    else:
        method = "sendMessage"
        body["text"] = text

    try:
        response = requests.post(TELEGRAM_API.format(token=bot_token, method=method), json=body, timeout=timeout)
    except requests.RequestException as e:
        logger.warning("Telegram send to master %s failed: %s", master.master_id, e)
        return False
    if not response.ok:
        logger.warning("Telegram rejected message for master %s: HTTP %s", master.master_id, response.status_code)
    return response.ok
