from __future__ import annotations

import io
import re
import unicodedata
from datetime import datetime

import pandas as pd


# normalized header -> canonical field, for the order and line sheets planners export
ORDER_COLUMNS: dict[str, str] = {
    "order_id": "order_id",
    "id": "order_id",
    "order_code": "order_code",
    "order": "order_code",
    "buyer": "buyer",
    "customer": "buyer",
    "style": "style",
    "quantity": "quantity",
    "qty": "quantity",
    "order_qty": "quantity",
    "delivery_date": "delivery_date",
    "ship_date": "delivery_date",
    "requested_ship_date": "delivery_date",
    "start_date": "start_date",
    "end_date": "end_date",
    "priority": "priority",
}

LINE_COLUMNS: dict[str, str] = {
    "line_id": "line_id",
    "line_code": "line_id",
    "line": "line_id",
    "line_name": "line_name",
    "name": "line_name",
    "factory": "factory",
    "unit": "unit",
    "line_type": "line_type",
    "type": "line_type",
    "capacity": "capacity",
    "capacity_per_day": "capacity",
}


def read_excel_bytes(content: bytes) -> pd.DataFrame:
    """Read the first sheet of an .xlsx upload."""
    df = pd.read_excel(io.BytesIO(content))
    df.columns = [str(c).strip() for c in df.columns]
    return df


def normalize_col_name(name: str) -> str:
    """Normalize an Excel header to an ASCII snake_case token ("Ship Date " -> "ship_date")."""
    s = str(name or "").strip().lower()
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = s.replace("\u00a0", " ")
    s = re.sub(r"[^a-z0-9 ]+", " ", s)
    s = re.sub(r"\s+", "_", s).strip("_")
    return s


def canonical_columns(df: pd.DataFrame, aliases: dict[str, str]) -> pd.DataFrame:
    """Rename known headers to canonical names and drop the rest."""
    df = df.copy()
    df.columns = [normalize_col_name(c) for c in df.columns]
    keep: dict[str, str] = {}
    for col in df.columns:
        target = aliases.get(col)
        if target and target not in keep.values():
            keep[col] = target
    return df[list(keep.keys())].rename(columns=keep)


def is_blank(value) -> bool:
    if value is None:
        return True
    try:
        if pd.isna(value):
            return True
    except (TypeError, ValueError):
        pass
    return str(value).strip() == "" or str(value).strip().lower() == "nan"


def coerce_text(value) -> str | None:
    if is_blank(value):
        return None
    if isinstance(value, float) and float(value).is_integer():
        return str(int(value))
    return str(value).replace("\u00a0", " ").strip()


def coerce_date(value, *, field: str = "date") -> str | None:
    """Coerce Excel/pandas date cells to ISO YYYY-MM-DD; blank cells give None."""
    if is_blank(value):
        return None

    if isinstance(value, datetime):
        return value.date().isoformat()

    # pandas Timestamp
    if hasattr(value, "to_pydatetime"):
        return value.to_pydatetime().date().isoformat()

    s = str(value).strip()
    try:
        return datetime.fromisoformat(s).date().isoformat()
    except ValueError:
        pass

    for fmt in ("%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d", "%m/%d/%Y"):
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue

    raise ValueError(f"{field} invalid: {value!r}")


def coerce_float(value) -> float | None:
    """Coerce numeric cells (numbers or text, "1,234.5" style) to float; blank gives None."""
    if is_blank(value):
        return None

    if isinstance(value, (int, float)):
        return float(value)

    s = str(value).strip().replace(",", "")
    try:
        return float(s)
    except ValueError:
        return None
