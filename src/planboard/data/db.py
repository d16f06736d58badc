from __future__ import annotations


from contextlib import contextmanager
import sqlite3
from pathlib import Path


class Db:
    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def connect(self):
        con = sqlite3.connect(self.path, timeout=20.0)
        con.row_factory = sqlite3.Row
        con.execute("PRAGMA foreign_keys=ON;")
        try:
            yield con
            con.commit()
        except Exception:
            con.rollback()
            raise
        finally:
            con.close()

    def ensure_schema(self) -> None:
        con = sqlite3.connect(self.path, timeout=10.0)
        try:
            con.execute("PRAGMA journal_mode=WAL;")
            con.execute("PRAGMA foreign_keys=ON;")

            con.executescript(
                """
                CREATE TABLE IF NOT EXISTS audit_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL DEFAULT(datetime('now', 'localtime')),
                    category TEXT NOT NULL,
                    message TEXT NOT NULL,
                    details TEXT
                );

                CREATE TABLE IF NOT EXISTS app_config (
                    config_key TEXT PRIMARY KEY,
                    config_value TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );

                -- Production lines. capacity is units per planning period.
                CREATE TABLE IF NOT EXISTS line (
                    line_id TEXT PRIMARY KEY,
                    line_name TEXT,
                    factory TEXT,
                    unit TEXT,
                    line_type TEXT,
                    capacity REAL NOT NULL CHECK (capacity > 0),
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS planning_group (
                    group_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS planning_group_line (
                    group_id TEXT NOT NULL,
                    line_id TEXT NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY(group_id, line_id),
                    FOREIGN KEY(group_id) REFERENCES planning_group(group_id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS customer_order (
                    order_id TEXT PRIMARY KEY,
                    order_code TEXT,
                    buyer TEXT,
                    style TEXT,
                    quantity REAL NOT NULL,
                    delivery_date TEXT,
                    start_date TEXT,
                    end_date TEXT,
                    priority INTEGER NOT NULL DEFAULT 3,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );

                -- One committed allocation per order; re-committing replaces it.
                CREATE TABLE IF NOT EXISTS allocation (
                    order_id TEXT PRIMARY KEY,
                    line_id TEXT NOT NULL,
                    quantity REAL NOT NULL,
                    utilization REAL,
                    warning TEXT,
                    committed_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY(order_id) REFERENCES customer_order(order_id) ON DELETE CASCADE,
                    FOREIGN KEY(line_id) REFERENCES line(line_id)
                );

                CREATE INDEX IF NOT EXISTS ix_allocation_line ON allocation(line_id);
                CREATE INDEX IF NOT EXISTS ix_order_start ON customer_order(start_date);
                """
            )
            con.commit()
        finally:
            con.close()
