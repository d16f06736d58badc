from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date

from planboard.core.models import AllocationResult, AuditEntry, LineCapacitySnapshot, PlanningGroup, Task
from planboard.data.db import Db
from planboard.data.excel_io import (
    LINE_COLUMNS,
    ORDER_COLUMNS,
    canonical_columns,
    coerce_date,
    coerce_float,
    coerce_text,
    read_excel_bytes,
)
from planboard.layout.timeline import task_in_window
from planboard.settings import CONFIG_DEFAULTS

logger = logging.getLogger(__name__)


class Repository:
    """Record store the planning board reads snapshots from and commits allocations to."""

    def __init__(self, db: Db):
        self.db = db

    def log_audit(self, category: str, message: str, details: str | None = None) -> None:
        """Record a business event in the audit log."""
        try:
            with self.db.connect() as con:
                con.execute(
                    "INSERT INTO audit_log (category, message, details) VALUES (?, ?, ?)",
                    (category, message, details),
                )
        except Exception:
            # An audit failure must not undo the change it describes.
            logger.exception("Failed to write audit log")

    def get_recent_audit_entries(self, limit: int = 100) -> list[AuditEntry]:
        with self.db.connect() as con:
            rows = con.execute("SELECT * FROM audit_log ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [
            AuditEntry(
                id=row["id"],
                timestamp=row["timestamp"],
                category=row["category"],
                message=row["message"],
                details=row["details"],
            )
            for row in rows
        ]

    # ---------- App config ----------
    def get_config(self, *, key: str, default: str | None = None) -> str | None:
        key = str(key).strip()
        if not key:
            raise ValueError("empty config key")
        with self.db.connect() as con:
            row = con.execute("SELECT config_value FROM app_config WHERE config_key = ?", (key,)).fetchone()
        if row is None:
            return default if default is not None else CONFIG_DEFAULTS.get(key)
        return str(row[0])

    def get_config_int(self, *, key: str, default: int) -> int:
        raw = self.get_config(key=key)
        try:
            return int(str(raw).strip())
        except (TypeError, ValueError):
            return default

    def get_config_bool(self, *, key: str, default: bool = False) -> bool:
        raw = self.get_config(key=key)
        if raw is None:
            return default
        return str(raw).strip().lower() in {"1", "true", "yes", "on"}

    def set_config(self, *, key: str, value: str) -> None:
        key = str(key).strip()
        if not key:
            raise ValueError("empty config key")

        with self.db.connect() as con:
            old_row = con.execute("SELECT config_value FROM app_config WHERE config_key = ?", (key,)).fetchone()
            old_val = old_row[0] if old_row else "(none)"
            con.execute(
                """
                INSERT INTO app_config(config_key, config_value, updated_at)
                VALUES(?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(config_key) DO UPDATE SET
                    config_value = excluded.config_value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, str(value)),
            )
        self.log_audit("CONFIG", f"Updated '{key}'", f"From '{old_val}' to '{value}'")

    # ---------- Lines ----------
    def upsert_line(
        self,
        *,
        line_id: str,
        capacity: float,
        line_name: str | None = None,
        factory: str | None = None,
        unit: str | None = None,
        line_type: str | None = None,
        sort_order: int | None = None,
    ) -> None:
        line_id = str(line_id or "").strip()
        if not line_id:
            raise ValueError("line_id is required")
        if capacity is None or float(capacity) <= 0:
            raise ValueError(f"line {line_id!r}: capacity must be > 0")

        with self.db.connect() as con:
            if sort_order is None:
                row = con.execute("SELECT COALESCE(MAX(sort_order), 0) + 1 FROM line").fetchone()
                sort_order = int(row[0])
            con.execute(
                """
                INSERT INTO line(line_id, line_name, factory, unit, line_type, capacity, sort_order)
                VALUES(?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(line_id) DO UPDATE SET
                    line_name = excluded.line_name,
                    factory = excluded.factory,
                    unit = excluded.unit,
                    line_type = excluded.line_type,
                    capacity = excluded.capacity,
                    is_active = 1
                """,
                (line_id, line_name, factory, unit, line_type, float(capacity), int(sort_order)),
            )

    def get_line_snapshots(self) -> list[LineCapacitySnapshot]:
        """Active lines in catalog order; `allocated` is the sum of committed allocations."""
        with self.db.connect() as con:
            rows = con.execute(
                """
                SELECT l.line_id, l.line_name, l.factory, l.unit, l.line_type, l.capacity,
                       COALESCE(SUM(a.quantity), 0) AS allocated
                FROM line l
                LEFT JOIN allocation a ON a.line_id = l.line_id
                WHERE l.is_active = 1
                GROUP BY l.line_id
                ORDER BY l.sort_order, l.line_id
                """
            ).fetchall()
        return [
            LineCapacitySnapshot(
                line_id=str(r["line_id"]),
                capacity=float(r["capacity"]),
                allocated=float(r["allocated"]),
                line_name=r["line_name"],
                factory=r["factory"],
                unit=r["unit"],
                line_type=r["line_type"],
            )
            for r in rows
        ]

    # ---------- Planning groups ----------
    def upsert_planning_group(self, *, group_id: str, name: str, line_ids: Iterable[str]) -> None:
        group_id = str(group_id or "").strip()
        if not group_id:
            raise ValueError("group_id is required")
        if group_id == "all":
            raise ValueError("'all' is reserved for the unfiltered board")

        ids: list[str] = []
        for lid in line_ids:
            s = str(lid).strip()
            if s and s not in ids:
                ids.append(s)

        with self.db.connect() as con:
            con.execute(
                """
                INSERT INTO planning_group(group_id, name) VALUES(?, ?)
                ON CONFLICT(group_id) DO UPDATE SET name = excluded.name
                """,
                (group_id, str(name or group_id)),
            )
            con.execute("DELETE FROM planning_group_line WHERE group_id = ?", (group_id,))
            con.executemany(
                "INSERT INTO planning_group_line(group_id, line_id, position) VALUES(?, ?, ?)",
                [(group_id, lid, pos) for pos, lid in enumerate(ids)],
            )
        self.log_audit("GROUP", f"Saved planning group '{group_id}'", ", ".join(ids))

    def get_planning_groups(self) -> list[PlanningGroup]:
        with self.db.connect() as con:
            groups = con.execute("SELECT group_id, name FROM planning_group ORDER BY name, group_id").fetchall()
            members = con.execute(
                "SELECT group_id, line_id FROM planning_group_line ORDER BY group_id, position"
            ).fetchall()
        by_group: dict[str, list[str]] = {}
        for m in members:
            by_group.setdefault(str(m["group_id"]), []).append(str(m["line_id"]))
        return [
            PlanningGroup(
                group_id=str(g["group_id"]),
                name=str(g["name"]),
                line_ids=tuple(by_group.get(str(g["group_id"]), [])),
            )
            for g in groups
        ]

    def get_planning_group(self, group_id: str) -> PlanningGroup | None:
        for g in self.get_planning_groups():
            if g.group_id == group_id:
                return g
        return None

    # ---------- Orders ----------
    def upsert_order(
        self,
        *,
        order_id: str,
        quantity: float,
        order_code: str | None = None,
        buyer: str | None = None,
        style: str | None = None,
        delivery_date: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        priority: int = 3,
    ) -> None:
        order_id = str(order_id or "").strip()
        if not order_id:
            raise ValueError("order_id is required")
        if quantity is None or float(quantity) <= 0:
            raise ValueError(f"order {order_id!r}: quantity must be > 0")
        if start_date and end_date and end_date < start_date:
            raise ValueError(f"order {order_id!r}: end_date before start_date")

        with self.db.connect() as con:
            con.execute(
                """
                INSERT INTO customer_order(
                    order_id, order_code, buyer, style, quantity,
                    delivery_date, start_date, end_date, priority
                ) VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(order_id) DO UPDATE SET
                    order_code = excluded.order_code,
                    buyer = excluded.buyer,
                    style = excluded.style,
                    quantity = excluded.quantity,
                    delivery_date = excluded.delivery_date,
                    start_date = COALESCE(excluded.start_date, customer_order.start_date),
                    end_date = COALESCE(excluded.end_date, customer_order.end_date),
                    priority = excluded.priority
                """,
                (
                    order_id,
                    order_code,
                    buyer,
                    style,
                    float(quantity),
                    delivery_date,
                    start_date,
                    end_date,
                    int(priority),
                ),
            )

    def set_order_dates(self, *, order_id: str, start_date: str, end_date: str) -> None:
        if end_date < start_date:
            raise ValueError(f"order {order_id!r}: end_date before start_date")
        with self.db.connect() as con:
            cur = con.execute(
                "UPDATE customer_order SET start_date = ?, end_date = ? WHERE order_id = ?",
                (start_date, end_date, order_id),
            )
            if cur.rowcount == 0:
                raise ValueError(f"unknown order {order_id!r}")

    def get_unscheduled_orders(self) -> list[dict]:
        """Orders without a committed line, highest priority and earliest delivery first."""
        with self.db.connect() as con:
            rows = con.execute(
                """
                SELECT o.order_id, o.order_code, o.buyer, o.style, o.quantity,
                       o.delivery_date, o.start_date, o.end_date, o.priority
                FROM customer_order o
                LEFT JOIN allocation a ON a.order_id = o.order_id
                WHERE a.order_id IS NULL
                ORDER BY o.priority, COALESCE(o.delivery_date, '9999-12-31'), o.order_id
                """
            ).fetchall()
        return [dict(r) for r in rows]

    def get_scheduled_rows(self) -> list[dict]:
        with self.db.connect() as con:
            rows = con.execute(
                """
                SELECT o.order_id, o.order_code, o.buyer, o.style, o.quantity,
                       o.delivery_date, o.start_date, o.end_date, o.priority,
                       a.line_id, a.warning
                FROM customer_order o
                JOIN allocation a ON a.order_id = o.order_id
                ORDER BY o.priority, o.start_date, a.committed_at, o.order_id
                """
            ).fetchall()
        return [dict(r) for r in rows]

    def get_board_tasks(self, *, window_start: date) -> list[Task]:
        """Scheduled orders as timeline tasks relative to `window_start`.

        Returned in lane priority order (priority, then start date, then commit
        time). Orders that ended before the window are skipped; orders without
        dates cannot be drawn and are skipped too.
        """
        tasks: list[Task] = []
        for r in self.get_scheduled_rows():
            if not r.get("start_date") or not r.get("end_date"):
                continue
            task = task_in_window(
                str(r["order_id"]),
                date.fromisoformat(str(r["start_date"])),
                date.fromisoformat(str(r["end_date"])),
                window_start=window_start,
                resource_id=str(r["line_id"]),
                label=r.get("order_code") or r.get("style") or str(r["order_id"]),
                quantity=float(r["quantity"]),
            )
            if task is not None:
                tasks.append(task)
        return tasks

    # ---------- Allocations ----------
    def commit_allocations(
        self,
        results: Iterable[AllocationResult],
        *,
        dates: Mapping[str, tuple[str, str]] | None = None,
    ) -> int:
        """Persist the accepted results. Idempotent per order id: a second commit replaces the first.

        Rejected results are ignored. `dates` (order id -> ISO start, end) are
        written in the same transaction, so a failing date leaves no allocation
        behind. Returns the number of allocation rows written.
        """
        dates = dict(dates or {})
        for order_id, (start_date, end_date) in dates.items():
            if end_date < start_date:
                raise ValueError(f"order {order_id!r}: end_date before start_date")

        rows = [
            (
                str(r.order_id),
                str(r.line_id),
                float(r.requested_quantity),
                r.resulting_utilization,
                r.reason.value if r.reason is not None else None,
            )
            for r in results
            if r.accepted and r.order_id and r.line_id
        ]
        if not rows:
            return 0

        with self.db.connect() as con:
            con.executemany(
                """
                INSERT INTO allocation(order_id, line_id, quantity, utilization, warning, committed_at)
                VALUES(?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(order_id) DO UPDATE SET
                    line_id = excluded.line_id,
                    quantity = excluded.quantity,
                    utilization = excluded.utilization,
                    warning = excluded.warning,
                    committed_at = CURRENT_TIMESTAMP
                """,
                rows,
            )
            for order_id, (start_date, end_date) in dates.items():
                cur = con.execute(
                    "UPDATE customer_order SET start_date = ?, end_date = ? WHERE order_id = ?",
                    (start_date, end_date, order_id),
                )
                if cur.rowcount == 0:
                    raise ValueError(f"unknown order {order_id!r}")

        over = [r[0] for r in rows if r[4]]
        self.log_audit(
            "ALLOCATION",
            f"Committed {len(rows)} allocation(s)",
            f"over capacity: {', '.join(over)}" if over else None,
        )
        logger.info("Committed %d allocation(s)", len(rows))
        return len(rows)

    def cancel_allocation(self, *, order_id: str) -> bool:
        """Return an order to the unscheduled list. The line's load drops accordingly."""
        with self.db.connect() as con:
            cur = con.execute("DELETE FROM allocation WHERE order_id = ?", (order_id,))
            removed = cur.rowcount > 0
        if removed:
            self.log_audit("ALLOCATION", f"Cancelled allocation of '{order_id}'")
        return removed

    # ---------- Excel import ----------
    def import_excel_bytes(self, *, kind: str, content: bytes) -> int:
        kind = str(kind or "").strip().lower()
        if kind == "orders":
            return self.import_orders_bytes(content=content)
        if kind == "lines":
            return self.import_lines_bytes(content=content)
        raise ValueError(f"unsupported import kind: {kind!r}")

    def import_orders_bytes(self, *, content: bytes) -> int:
        df = canonical_columns(read_excel_bytes(content), ORDER_COLUMNS)
        if "order_id" not in df.columns or "quantity" not in df.columns:
            raise ValueError("orders sheet needs 'order id' and 'quantity' columns")

        count = 0
        skipped = 0
        for _, row in df.iterrows():
            order_id = coerce_text(row.get("order_id"))
            qty = coerce_float(row.get("quantity"))
            if not order_id or qty is None or qty <= 0:
                skipped += 1
                continue
            prio = coerce_float(row.get("priority"))
            self.upsert_order(
                order_id=order_id,
                quantity=qty,
                order_code=coerce_text(row.get("order_code")),
                buyer=coerce_text(row.get("buyer")),
                style=coerce_text(row.get("style")),
                delivery_date=coerce_date(row.get("delivery_date"), field="delivery_date"),
                start_date=coerce_date(row.get("start_date"), field="start_date"),
                end_date=coerce_date(row.get("end_date"), field="end_date"),
                priority=int(prio) if prio is not None else 3,
            )
            count += 1

        if skipped:
            logger.warning("Order import skipped %d row(s) without id or positive quantity", skipped)
        self.log_audit("IMPORT", f"Imported {count} order(s)", f"skipped {skipped}" if skipped else None)
        return count

    def import_lines_bytes(self, *, content: bytes) -> int:
        df = canonical_columns(read_excel_bytes(content), LINE_COLUMNS)
        if "line_id" not in df.columns or "capacity" not in df.columns:
            raise ValueError("lines sheet needs 'line id' and 'capacity' columns")

        count = 0
        skipped = 0
        for _, row in df.iterrows():
            line_id = coerce_text(row.get("line_id"))
            cap = coerce_float(row.get("capacity"))
            if not line_id or cap is None or cap <= 0:
                skipped += 1
                continue
            self.upsert_line(
                line_id=line_id,
                capacity=cap,
                line_name=coerce_text(row.get("line_name")),
                factory=coerce_text(row.get("factory")),
                unit=coerce_text(row.get("unit")),
                line_type=coerce_text(row.get("line_type")),
            )
            count += 1

        if skipped:
            logger.warning("Line import skipped %d row(s) without id or positive capacity", skipped)
        self.log_audit("IMPORT", f"Imported {count} line(s)", f"skipped {skipped}" if skipped else None)
        return count
