from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import psycopg
from psycopg import Connection

from .config import DbConfig
from .errors import PersistenceError

logger = logging.getLogger(__name__)

CHANGES_CHANNEL = "workshop_changes"


@dataclass(frozen=True)
class Db:
    cfg: DbConfig

    def connect(self) -> Connection:
        try:
            return psycopg.connect(
                host=self.cfg.host,
                port=self.cfg.port,
                dbname=self.cfg.name,
                user=self.cfg.user,
                password=self.cfg.password,
                sslmode=self.cfg.sslmode,
                autocommit=True,
            )
        except psycopg.Error as e:
            raise PersistenceError(
                "Cannot connect to database. Check config.toml [db] and that PostgreSQL is running."
            ) from e

    @contextmanager
    def session(self) -> Iterator[Connection]:
        conn = self.connect()
        try:
            yield conn
        except psycopg.Error as e:
            raise PersistenceError(str(e)) from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """
        One atomic batch: every row written inside the block commits together
        or none of them does.
        """
        conn = self.connect()
        try:
            conn.execute("BEGIN;")
            yield conn
            conn.execute("COMMIT;")
        except psycopg.Error as e:
            self._rollback(conn)
            raise PersistenceError(str(e)) from e
        except Exception:
            self._rollback(conn)
            raise
        finally:
            conn.close()

    @staticmethod
    def _rollback(conn: Connection) -> None:
        try:
            conn.execute("ROLLBACK;")
        except psycopg.Error:
            logger.warning("Rollback failed; connection is closed without commit.")
