"""Application entry point for the jobrelay service."""

from __future__ import annotations

import argparse
import logging
import os
from datetime import timedelta
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn
from art import tprint
from fastapi import FastAPI

from jobrelay import settings
from jobrelay.adapters.sqlite_storage import SQLiteMessageStore
from jobrelay.adapters.telegram_bot_gateway import TelegramBotGateway
from jobrelay.core.config import WorkerConfig
from jobrelay.core.processor import ProcessingWorker
from jobrelay.core.rules_engine import build_tables
from jobrelay.ingestion import IngestionEndpoint
from jobrelay.web import create_app

NAME = "JOBRELAY"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", ["BOT_TOKEN"]):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/jobrelay.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.BASE_DIR, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _build_store() -> SQLiteMessageStore:
    store = SQLiteMessageStore(
        settings.DB_PATH,
        claim_ttl=timedelta(seconds=settings.CLAIM_TTL_SECONDS),
    )
    store.init_db()
    return store


def _build_worker(store: SQLiteMessageStore) -> ProcessingWorker:
    # Fail fast: a worker without a token or destination would classify
    # records and then fail every send, leaving them unforwarded for good.
    if not settings.BOT_TOKEN:
        raise RuntimeError("BOT_TOKEN is required to forward posts")
    if settings.DESTINATION_CHAT_ID is None:
        raise RuntimeError("PERSONAL_CHAT_ID is required to forward posts")

    # Tables are built once here and shared read-only by every worker pass.
    tables = build_tables(settings.CLASSIFIER_CONFIG)
    return ProcessingWorker(
        store=store,
        gateway=TelegramBotGateway(settings.BOT_TOKEN),
        tables=tables,
        config=WorkerConfig(
            destination_chat_id=settings.DESTINATION_CHAT_ID,
            batch_size=settings.BATCH_SIZE,
        ),
    )


def build_application() -> FastAPI:
    """Wire store, worker and ingestion into the HTTP app."""

    store = _build_store()
    return create_app(IngestionEndpoint(store), _build_worker(store))


def _serve() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    app = build_application()
    logger.info("Starting jobrelay on port %s", settings.PORT)
    # log_config=None keeps our handlers (and token redaction) in charge.
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_config=None)


def _work() -> None:
    _configure_logging()
    logger = logging.getLogger(__name__)

    worker = _build_worker(_build_store())
    result = worker.run_batch()
    logger.info(
        "Manual pass: fetched=%s, forwarded=%s, duplicates=%s, failed=%s",
        result.fetched,
        result.forwarded,
        result.duplicates,
        result.failed,
    )


def _init_db() -> None:
    _configure_logging()
    _build_store()
    logging.getLogger(__name__).info("Database ready at %s", settings.DB_PATH)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="jobrelay")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("serve", help="Serve the webhook and worker endpoints")
    subparsers.add_parser("work", help="Run one worker pass and exit")
    subparsers.add_parser("init-db", help="Create the SQLite schema")

    args = parser.parse_args(argv)
    if args.command == "work":
        _work()
        return
    if args.command == "init-db":
        _init_db()
        return
    _serve()


if __name__ == "__main__":
    main()
