from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from nicegui import app, ui

from planboard.data.db import Db
from planboard.data.repository import Repository
from planboard.logging_conf import configure_logging
from planboard.settings import Settings, default_db_path
from planboard.ui.pages import register_pages

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Production Planning Board")
    parser.add_argument("--host", type=str, default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--log-level", type=str, default="INFO", help="DEBUG, INFO, WARNING or ERROR")
    return parser


def main() -> None:
    args = build_arg_parser().parse_args()
    settings = Settings(db_path=default_db_path(), host=args.host, port=args.port, log_level=args.log_level)

    configure_logging(settings.log_level)

    db = Db(settings.db_path)
    db.ensure_schema()
    logger.info("Using database at %s", settings.db_path)

    repo = Repository(db)
    board_name = repo.get_config(key="board_name") or "Production Planning Board"
    register_pages(repo)

    if sys.platform == "win32":
        @app.on_startup
        async def _silence_windows_connection_reset() -> None:
            loop = asyncio.get_running_loop()

            def _handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
                exc = context.get("exception")
                if isinstance(exc, ConnectionResetError) and getattr(exc, "winerror", None) == 10054:
                    return
                loop.default_exception_handler(context)

            loop.set_exception_handler(_handler)

    ui.run(host=settings.host, port=settings.port, title=board_name, reload=False)


if __name__ in {"__main__", "__mp_main__"}:
    main()
