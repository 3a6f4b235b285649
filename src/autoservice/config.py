from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Optional

CONFIG_ENV = "AUTOSERVICE_CONFIG"
DEFAULT_CONFIG_PATH = "config.toml"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DbConfig:
    host: str
    port: int
    name: str
    user: str
    password: str
    sslmode: str = "disable"


@dataclass(frozen=True)
class BusinessConfig:
    parts_markup_pct: Decimal = Decimal("30")


@dataclass(frozen=True)
class TelegramConfig:
    bot_token: Optional[str] = None


@dataclass(frozen=True)
class AiConfig:
    api_key: Optional[str] = None
    model: str = "gemini-2.5-pro"


@dataclass(frozen=True)
class AppConfig:
    name: str
    log_level: str
    db: DbConfig
    business: BusinessConfig
    telegram: TelegramConfig
    ai: AiConfig


def resolve_config_path(path: str | Path | None = None) -> Path:
    return Path(path or os.getenv(CONFIG_ENV) or DEFAULT_CONFIG_PATH)


def load_config(path: str | Path | None = None) -> AppConfig:
    p = resolve_config_path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p.resolve()}")

    try:
        data = tomllib.loads(p.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to read config TOML: {e}") from e

    try:
        app = data.get("app", {})
        db = data["db"]
        business = data.get("business", {})
        telegram = data.get("telegram", {})
        ai = data.get("ai", {})
        return AppConfig(
            name=str(app.get("name", "AutoService")),
            log_level=str(app.get("log_level", "INFO")).upper(),
            db=DbConfig(
                host=str(db["host"]),
                port=int(db.get("port", 5432)),
                name=str(db["name"]),
                user=str(db["user"]),
                password=str(db["password"]),
                sslmode=str(db.get("sslmode", "disable")),
            ),
            business=BusinessConfig(
                parts_markup_pct=Decimal(str(business.get("parts_markup_pct", "30"))),
            ),
            telegram=TelegramConfig(bot_token=telegram.get("bot_token") or None),
            ai=AiConfig(
                api_key=ai.get("api_key") or os.getenv("GEMINI_API_KEY") or None,
                model=str(ai.get("model", AiConfig.model)),
            ),
        )
    except KeyError as e:
        raise ConfigError(f"Missing config key: {e}") from e
    except (TypeError, ValueError, ArithmeticError) as e:
        raise ConfigError(f"Invalid config values: {e}") from e
