# src/common/logger.py
"""
Модуль структурированного логирования.
Поддерживает JSON и цветной текстовый формат, ротацию файлов по размеру
и отдельный файл для ошибок.
"""

from __future__ import annotations

import inspect
import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from src.common.constants import TypeMsg

DEFAULT_LOGGER = "ride_earnings"

# Общие для всех логгеров файловые хендлеры
_GLOBAL_FILE_HANDLER: logging.Handler | None = None
_GLOBAL_ERROR_HANDLER: logging.Handler | None = None

_LOGGING_INITIALIZED: bool = False


# =============================================================================
# ФОРМАТТЕРЫ
# =============================================================================

class JsonFormatter(logging.Formatter):
    """Форматтер для JSON логов (одна запись на строку)."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data["extra"] = extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Цветной форматтер для консоли (разработка)."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    GRAY = "\033[90m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.GRAY)
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        caller = ""
        extra_data = getattr(record, "extra_data", None) or {}
        if extra_data.get("caller_function"):
            caller = (
                f" {self.GRAY}[{extra_data.get('caller_module')}."
                f"{extra_data.get('caller_function')}() "
                f"{extra_data.get('caller_file')}:{extra_data.get('caller_line')}]{self.RESET}"
            )

        message = f"{timestamp} {color}[{record.levelname}]{self.RESET}{caller} {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


class DateBasedRotatingFileHandler(RotatingFileHandler):
    """
    Пишет в файл с фиксированным именем (например, app.log).
    При превышении размера текущий файл переименовывается
    в app_<дата>_<время>.log и открывается новый.
    """

    def __init__(self, log_dir: str, max_bytes: int, logger_name: str = "app", encoding: str = "utf-8"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.logger_name = logger_name
        super().__init__(
            filename=str(self.log_dir / f"{logger_name}.log"),
            maxBytes=max_bytes,
            backupCount=0,
            encoding=encoding,
        )

    def doRollover(self) -> None:
        if self.stream:
            self.stream.close()
            self.stream = None  # type: ignore[assignment]

        stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        archive = self.log_dir / f"{self.logger_name}_{stamp}.log"
        if os.path.exists(self.baseFilename):
            try:
                os.rename(self.baseFilename, archive)
            except OSError:
                # файл занят другим процессом: продолжаем писать в него
                pass

        self.stream = self._open()


# =============================================================================
# НАСТРОЙКИ ЛОГГЕРА
# =============================================================================

@dataclass
class _LogOptions:
    level: str = "DEBUG"
    fmt: str = "colored"
    to_file: bool = False
    file_path: str = "logs/app.log"
    max_bytes: int = 10485760


def _read_log_options() -> _LogOptions:
    """Читает параметры логирования из конфигурации (с безопасными дефолтами)."""
    # Ленивый импорт: config сам пользуется логгером при ошибках
    try:
        from src.config import settings
        section = settings.logging
        options = _LogOptions(
            level=section.LOG_LEVEL,
            fmt=section.LOG_FORMAT,
            to_file=section.LOG_TO_FILE,
            file_path=section.LOG_FILE_PATH,
            max_bytes=section.LOG_MAX_BYTES,
        )
    except Exception:
        return _LogOptions()

    # В тестах settings может быть MagicMock
    defaults = _LogOptions()
    for name in ("level", "fmt", "file_path"):
        if not isinstance(getattr(options, name), str):
            setattr(options, name, getattr(defaults, name))
    if not isinstance(options.to_file, bool):
        options.to_file = defaults.to_file
    if not isinstance(options.max_bytes, int):
        options.max_bytes = defaults.max_bytes
    return options


def _make_formatter(fmt: str) -> logging.Formatter:
    return JsonFormatter() if fmt == "json" else ColoredFormatter()


def _attach_file_handlers(logger: logging.Logger, options: _LogOptions) -> None:
    """Подключает общий файловый хендлер и хендлер ошибок."""
    global _GLOBAL_FILE_HANDLER, _GLOBAL_ERROR_HANDLER

    log_path = Path(options.file_path)
    log_name = log_path.stem
    service_name = os.getenv("SERVICE_NAME")
    if service_name:
        log_name = f"{log_name}_{service_name}"

    if _GLOBAL_FILE_HANDLER is None:
        _GLOBAL_FILE_HANDLER = DateBasedRotatingFileHandler(
            log_dir=str(log_path.parent),
            max_bytes=options.max_bytes,
            logger_name=log_name,
        )
        _GLOBAL_FILE_HANDLER.setFormatter(_make_formatter(options.fmt))

    if _GLOBAL_ERROR_HANDLER is None:
        _GLOBAL_ERROR_HANDLER = DateBasedRotatingFileHandler(
            log_dir=str(log_path.parent),
            max_bytes=options.max_bytes,
            logger_name="error",
        )
        _GLOBAL_ERROR_HANDLER.setLevel(logging.ERROR)
        _GLOBAL_ERROR_HANDLER.setFormatter(_make_formatter(options.fmt))

    logger.addHandler(_GLOBAL_FILE_HANDLER)
    logger.addHandler(_GLOBAL_ERROR_HANDLER)


# =============================================================================
# ЛОГГЕР
# =============================================================================

_loggers: dict[str, logging.Logger] = {}


def setup_logging() -> None:
    """
    Инициализирует систему логирования. Идемпотентна.
    Вызывается из lifespan приложения и из точек входа.
    """
    global _LOGGING_INITIALIZED
    if _LOGGING_INITIALIZED:
        return
    _LOGGING_INITIALIZED = True

    get_logger(DEFAULT_LOGGER)

    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("aio_pika").setLevel(logging.WARNING)
    logging.getLogger("aiormq").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)


def get_logger(name: str = DEFAULT_LOGGER) -> logging.Logger:
    """
    Возвращает настроенный логгер (с кэшированием, без дублирования хендлеров).

    Args:
        name: Имя логгера

    Returns:
        Настроенный логгер
    """
    if name in _loggers:
        return _loggers[name]

    options = _read_log_options()

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, options.level.upper(), logging.DEBUG))

    if not logger.handlers:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(_make_formatter(options.fmt))
        logger.addHandler(console)

        if options.to_file:
            _attach_file_handlers(logger, options)

    logger.propagate = False
    _loggers[name] = logger
    return logger


# =============================================================================
# АСИНХРОННЫЕ ХЕЛПЕРЫ
# =============================================================================

def _get_caller_info() -> dict[str, Any]:
    """
    Информация о коде, вызвавшем log_* (на два кадра выше текущего).

    Returns:
        caller_function, caller_module, caller_file, caller_line
        или пустой словарь, если стек недоступен.
    """
    frame = inspect.currentframe()
    try:
        caller_frame = frame.f_back.f_back if frame and frame.f_back else None
        if caller_frame is None:
            return {}

        module = inspect.getmodule(caller_frame)
        return {
            "caller_function": caller_frame.f_code.co_name,
            "caller_module": module.__name__ if module else "unknown",
            "caller_file": os.path.basename(caller_frame.f_code.co_filename),
            "caller_line": caller_frame.f_lineno,
        }
    except Exception:
        return {}
    finally:
        # разрываем ссылочный цикл на кадры
        del frame


def _emit(
    logger: logging.Logger,
    level: int,
    message: str,
    caller_info: dict[str, Any],
    extra: dict[str, Any] | None,
    exc_info: bool = False,
) -> None:
    record_extra = {"extra_data": {**caller_info, **(extra or {})}}
    logger.log(level, message, extra=record_extra, exc_info=exc_info)


_LEVELS: dict[TypeMsg, int] = {
    TypeMsg.DEBUG: logging.DEBUG,
    TypeMsg.INFO: logging.INFO,
    TypeMsg.WARNING: logging.WARNING,
    TypeMsg.ERROR: logging.ERROR,
    TypeMsg.CRITICAL: logging.CRITICAL,
}


async def log_info(
    message: str,
    *,
    type_msg: TypeMsg = TypeMsg.INFO,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Асинхронная запись в лог. Уровень задаётся через type_msg.

    Args:
        message: Сообщение
        type_msg: Уровень сообщения
        logger_name: Имя логгера
        extra: Дополнительные поля записи
    """
    _emit(
        get_logger(logger_name),
        _LEVELS.get(type_msg, logging.INFO),
        message,
        _get_caller_info(),
        extra,
    )


async def log_debug(
    message: str,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
) -> None:
    """Логирование DEBUG уровня."""
    _emit(get_logger(logger_name), logging.DEBUG, message, _get_caller_info(), extra)


async def log_warning(
    message: str,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
) -> None:
    """Логирование WARNING уровня."""
    _emit(get_logger(logger_name), logging.WARNING, message, _get_caller_info(), extra)


async def log_error(
    message: str,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """
    Логирование ERROR уровня.

    Args:
        message: Сообщение об ошибке
        logger_name: Имя логгера
        extra: Дополнительные поля записи
        exc_info: Приложить трейсбек текущего исключения
    """
    _emit(get_logger(logger_name), logging.ERROR, message, _get_caller_info(), extra, exc_info)
