from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    db_path: Path
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"


def default_db_path() -> Path:
    # Repo-local database, same place on every machine.
    return Path("db") / "planboard.db"


# Runtime options stored in app_config (key -> default as stored text).
CONFIG_DEFAULTS: dict[str, str] = {
    "board_name": "Production Planning Board",
    "board_days_shown": "28",
    "board_max_lanes": "12",
    "allow_overbooking": "0",
}
