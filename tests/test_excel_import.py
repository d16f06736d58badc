import io
from pathlib import Path

import pandas as pd
import pytest

from planboard.data.db import Db
from planboard.data.excel_io import canonical_columns, coerce_date, coerce_float, coerce_text, normalize_col_name, ORDER_COLUMNS
from planboard.data.repository import Repository


def make_excel_bytes(data: dict) -> bytes:
    """Create a minimal Excel file from a column->values dict."""
    bio = io.BytesIO()
    pd.DataFrame(data).to_excel(bio, index=False)
    bio.seek(0)
    return bio.read()


@pytest.fixture()
def repo(tmp_path) -> Repository:
    db = Db(Path(tmp_path) / "test.db")
    db.ensure_schema()
    return Repository(db)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Ship Date ", "ship_date"),
        ("Order ID", "order_id"),
        ("Capacity (per day)", "capacity_per_day"),
        ("Línea", "linea"),
    ],
)
def test_normalize_col_name(raw, expected):
    assert normalize_col_name(raw) == expected


def test_canonical_columns_keeps_first_alias():
    df = pd.DataFrame({"Order ID": ["A"], "ID": ["B"], "Qty": [1], "Notes": ["x"]})
    out = canonical_columns(df, ORDER_COLUMNS)
    assert list(out.columns) == ["order_id", "quantity"]
    assert out.iloc[0]["order_id"] == "A"


def test_coercions():
    assert coerce_text(101.0) == "101"
    assert coerce_text("  ") is None
    assert coerce_float("1,234.5") == 1234.5
    assert coerce_float("abc") is None
    assert coerce_date("2026-06-01") == "2026-06-01"
    assert coerce_date("15/06/2026") == "2026-06-15"
    assert coerce_date(pd.Timestamp("2026-07-04")) == "2026-07-04"
    assert coerce_date(None) is None
    with pytest.raises(ValueError, match="ship"):
        coerce_date("someday", field="ship")


def test_import_lines(repo):
    content = make_excel_bytes(
        {
            "Line ID": ["L1", "L2", "L3"],
            "Line Name": ["Line 1", "Line 2", "Line 3"],
            "Factory": ["North", "North", "South"],
            "Capacity": [100, 0, 250],
        }
    )
    assert repo.import_excel_bytes(kind="lines", content=content) == 2

    snaps = repo.get_line_snapshots()
    assert [s.line_id for s in snaps] == ["L1", "L3"]
    assert snaps[1].capacity == 250
    assert snaps[1].factory == "South"


def test_import_orders(repo):
    content = make_excel_bytes(
        {
            "Order ID": ["O1", "O2", None],
            "Buyer": ["ACME", "Globex", "Nobody"],
            "Qty": [120, 80, 10],
            "Ship Date": ["2026-06-01", "2026-05-20", "2026-05-01"],
            "Priority": [2, 1, 1],
        }
    )
    assert repo.import_excel_bytes(kind="Orders", content=content) == 2

    orders = repo.get_unscheduled_orders()
    assert [o["order_id"] for o in orders] == ["O2", "O1"]
    assert orders[1]["buyer"] == "ACME"
    assert orders[1]["quantity"] == 120
    assert orders[1]["delivery_date"] == "2026-06-01"
    assert repo.get_recent_audit_entries()[0].details == "skipped 1"


def test_import_requires_key_columns(repo):
    content = make_excel_bytes({"Buyer": ["ACME"], "Qty": [1]})
    with pytest.raises(ValueError, match="order id"):
        repo.import_excel_bytes(kind="orders", content=content)


def test_import_unknown_kind(repo):
    with pytest.raises(ValueError, match="unsupported"):
        repo.import_excel_bytes(kind="styles", content=b"")


def test_skipped_rows_are_logged(repo, caplog):
    content = make_excel_bytes({"Line ID": ["L1", None], "Capacity": [10, 20]})
    with caplog.at_level("WARNING", logger="planboard.data.repository"):
        assert repo.import_excel_bytes(kind="lines", content=content) == 1
    assert "skipped 1 row" in caplog.text
