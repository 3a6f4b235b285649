from __future__ import annotations

from autoservice.cli import run_cli
from autoservice.config import ConfigError, load_config
from autoservice.db import Db
from autoservice.errors import PersistenceError
from autoservice.logging_setup import configure_logging


def main() -> int:
    try:
        cfg = load_config()
        configure_logging(cfg.log_level)
        db = Db(cfg.db)
        run_cli(db, cfg)
        return 0
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}")
        return 2
    except PersistenceError as e:
        print(f"[DB ERROR] {e}")
        return 3
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
