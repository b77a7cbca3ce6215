"""Настройка логирования клиента WP API.

Логи пишутся в папку `logs/` и ротируются по размеру: app.log (всё) и errors.log (WARNING+).
В каждой записи есть run_id (correlation id), site_id и error_code.
"""

from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Контекст run_id для текущей операции (устанавливается в main() CLI).
_run_id_ctx: ContextVar[Optional[str]] = ContextVar("run_id", default=None)

LOG_FORMAT = "%(asctime)sZ %(levelname)s [%(run_id)s] %(name)s: %(message)s"
MAX_LOG_BYTES = 2 * 1024 * 1024
LOG_BACKUPS = 10


def set_run_id(run_id: Optional[str]) -> None:
    _run_id_ctx.set(run_id)


def get_run_id() -> Optional[str]:
    return _run_id_ctx.get()


class RunIdFilter(logging.Filter):
    """Добавляет run_id, site_id и error_code в каждую запись (из extra или контекста)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = getattr(record, "run_id", None) or _run_id_ctx.get() or "-"
        record.site_id = getattr(record, "site_id", None) or "-"
        record.error_code = getattr(record, "error_code", None) or "-"
        return True


class AppLogFormatter(logging.Formatter):
    """Формат с UTC-временем; site_id и error_code дописываются, если заданы."""

    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if getattr(record, "site_id", "-") != "-":
            base += f" site_id={record.site_id}"
        if getattr(record, "error_code", "-") != "-":
            base += f" error_code={record.error_code}"
        return base


def _file_handler(path: Path, level: int, formatter: logging.Formatter, run_filter: logging.Filter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(run_filter)
    return handler


def setup_app_logging(
    logs_dir: Path,
    level: int = logging.INFO,
    run_id: Optional[str] = None,
    console_level: Optional[int] = None,
) -> None:
    """Настроить логирование в `logs/app.log` и `logs/errors.log` с ротацией.

    Args:
        logs_dir: Каталог для логов.
        level: Уровень логирования (по умолчанию INFO).
        run_id: Correlation id для этого запуска (добавляется во все записи).
        console_level: Если задан, дублировать записи этого уровня и выше в stderr.
    """
    if run_id is not None:
        set_run_id(run_id)

    logs_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)

    # Идемпотентность: не добавляем хендлеры повторно.
    for h in root.handlers:
        if isinstance(h, RotatingFileHandler) and getattr(h, "baseFilename", "").endswith("app.log"):
            return

    run_filter = RunIdFilter()
    formatter = AppLogFormatter(LOG_FORMAT)

    root.addHandler(_file_handler(logs_dir / "app.log", level, formatter, run_filter))
    root.addHandler(_file_handler(logs_dir / "errors.log", logging.WARNING, formatter, run_filter))

    if console_level is not None:
        console = logging.StreamHandler()
        console.setLevel(console_level)
        console.setFormatter(formatter)
        console.addFilter(run_filter)
        root.addHandler(console)
