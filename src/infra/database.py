# src/infra/database.py
"""
Менеджер базы данных PostgreSQL.
Реализует пул соединений, автоматический retry и транзакции,
включая SERIALIZABLE-транзакции с повтором при конфликте сериализации.
"""

from __future__ import annotations

import asyncio
import random
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, AsyncGenerator, Awaitable, Callable, TypeVar

import asyncpg
from asyncpg import Connection, Pool, Record

from src.common.constants import TypeMsg
from src.common.logger import get_logger, log_error, log_info, log_warning

logger = get_logger("database")

T = TypeVar("T")

# Ошибки, при которых транзакцию имеет смысл повторить целиком
RETRYABLE_TRANSACTION_ERRORS = (
    asyncpg.exceptions.SerializationError,
    asyncpg.exceptions.DeadlockDetectedError,
)


def retry_on_connection_error(
    max_attempts: int = 3,
    delay: float = 1.0,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Декоратор для автоматического ретрая при ошибках подключения.

    Args:
        max_attempts: Максимальное количество попыток
        delay: Базовая задержка между попытками (секунды), растёт линейно
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            last_error: Exception | None = None

            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except (
                    asyncpg.PostgresConnectionError,
                    asyncpg.InterfaceError,
                    ConnectionRefusedError,
                    OSError,
                ) as e:
                    last_error = e
                    if attempt < max_attempts:
                        await log_warning(
                            f"Ошибка подключения к БД (попытка {attempt}/{max_attempts}): {e}",
                        )
                        await asyncio.sleep(delay * attempt)
                    else:
                        await log_error(f"Не удалось выполнить запрос к БД после {max_attempts} попыток: {e}")

            raise last_error  # type: ignore

        return wrapper  # type: ignore

    return decorator


class DatabaseManager:
    """
    Менеджер подключений к PostgreSQL.
    Singleton: один пул на процесс, соединение берётся на одну операцию.
    """

    _instance: DatabaseManager | None = None
    _pool: Pool | None = None

    def __new__(cls) -> DatabaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._pool = None

    @property
    def pool(self) -> Pool:
        """Возвращает пул соединений."""
        if self._pool is None:
            raise RuntimeError("Пул соединений не инициализирован. Вызовите connect() сначала.")
        return self._pool

    @retry_on_connection_error(max_attempts=3, delay=1.0)
    async def connect(
        self,
        dsn: str | None = None,
        min_size: int = 5,
        max_size: int = 25,
        command_timeout: int = 30,
    ) -> None:
        """
        Создаёт пул соединений к PostgreSQL.

        Args:
            dsn: DSN строка подключения (если None, берётся из конфига)
            min_size: Минимальный размер пула
            max_size: Максимальный размер пула
            command_timeout: Таймаут команд (секунды)
        """
        if self._pool is not None:
            return

        if dsn is None:
            from src.config import settings
            dsn = settings.database.dsn
            min_size = settings.database.DB_MIN_POOL_SIZE
            max_size = settings.database.DB_MAX_POOL_SIZE
            command_timeout = settings.database.DB_COMMAND_TIMEOUT

        await log_info("Подключение к PostgreSQL...", type_msg=TypeMsg.INFO)

        self._pool = await asyncpg.create_pool(
            dsn=dsn,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
        )

        await log_info(f"Пул PostgreSQL создан (min={min_size}, max={max_size})", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает пул соединений."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            await log_info("Соединение с PostgreSQL закрыто", type_msg=TypeMsg.INFO)

    @asynccontextmanager
    async def acquire(self) -> AsyncGenerator[Connection, None]:
        """
        Соединение из пула на время блока.

        Example:
            async with db.acquire() as conn:
                rows = await conn.fetch("SELECT * FROM driver_earnings")
        """
        async with self.pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self, isolation: str | None = None) -> AsyncGenerator[Connection, None]:
        """
        Транзакция: commit при успехе, rollback при любом исключении.

        Args:
            isolation: Уровень изоляции asyncpg ('serializable',
                'repeatable_read', 'read_committed') или None для уровня по умолчанию
        """
        async with self.pool.acquire() as connection:
            async with connection.transaction(isolation=isolation):
                yield connection

    async def run_in_transaction(
        self,
        func: Callable[[Connection], Awaitable[T]],
        *,
        isolation: str = "serializable",
        attempts: int | None = None,
    ) -> T:
        """
        Выполняет func(conn) в транзакции и повторяет её целиком
        при конфликте сериализации или дедлоке.

        Бизнес-исключения из func не повторяются: транзакция откатывается,
        исключение пробрасывается как есть.

        Args:
            func: Корутина, получающая соединение внутри транзакции
            isolation: Уровень изоляции
            attempts: Число попыток (по умолчанию DB_SERIALIZABLE_RETRIES)

        Returns:
            Результат func
        """
        if attempts is None:
            from src.config import settings
            attempts = settings.database.DB_SERIALIZABLE_RETRIES

        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                async with self.transaction(isolation=isolation) as conn:
                    return await func(conn)
            except RETRYABLE_TRANSACTION_ERRORS as e:
                last_error = e
                await log_warning(
                    f"Конфликт сериализации (попытка {attempt}/{attempts}): {e}",
                )
                if attempt < attempts:
                    await asyncio.sleep(random.uniform(0.005, 0.05) * attempt)

        await log_error(f"Транзакция не прошла после {attempts} попыток: {last_error}")
        raise last_error  # type: ignore

    @retry_on_connection_error()
    async def execute(self, query: str, *args: Any) -> str:
        """Выполняет SQL без возврата строк, возвращает статус команды."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    @retry_on_connection_error()
    async def fetch(self, query: str, *args: Any) -> list[Record]:
        """Выполняет SQL и возвращает все строки."""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    @retry_on_connection_error()
    async def fetchrow(self, query: str, *args: Any) -> Record | None:
        """Выполняет SQL и возвращает первую строку или None."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    @retry_on_connection_error()
    async def fetchval(self, query: str, *args: Any, column: int = 0) -> Any:
        """Выполняет SQL и возвращает одно значение."""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args, column=column)

    async def health_check(self) -> bool:
        """True, если база отвечает на SELECT 1."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except Exception as e:
            await log_error(f"Health check PostgreSQL failed: {e}")
            return False


def affected_rows(status: str) -> int:
    """
    Число затронутых строк из статуса asyncpg ('UPDATE 3' -> 3).
    """
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


# Глобальный экземпляр
_db_manager: DatabaseManager | None = None


def get_db() -> DatabaseManager:
    """Возвращает глобальный экземпляр DatabaseManager."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


async def init_db() -> None:
    """
    Подключается к базе по настройкам и применяет схему.
    """
    from src.config import settings

    db = get_db()
    await db.connect(
        dsn=settings.database.dsn,
        min_size=settings.database.DB_MIN_POOL_SIZE,
        max_size=settings.database.DB_MAX_POOL_SIZE,
        command_timeout=settings.database.DB_COMMAND_TIMEOUT,
    )
    await log_info(
        f"PostgreSQL подключён: {settings.database.DB_HOST}:{settings.database.DB_PORT}/{settings.database.DB_NAME}",
        type_msg=TypeMsg.INFO,
    )

    await _init_schema(db)


async def _init_schema(db: DatabaseManager) -> None:
    """Применяет migrations/init.sql под advisory-локом."""
    from src.config.loader import get_project_root

    schema_path = get_project_root() / "migrations" / "init.sql"
    if not schema_path.exists():
        await log_error(f"Файл схемы БД не найден: {schema_path}")
        return

    schema_sql = schema_path.read_text(encoding="utf-8")
    await log_info("Применение схемы БД...", type_msg=TypeMsg.INFO)

    try:
        # Лок не даёт нескольким воркерам накатывать схему одновременно
        async with db.transaction() as conn:
            await conn.execute("SELECT pg_advisory_xact_lock(724501)")
            await conn.execute(schema_sql)
    except (asyncpg.exceptions.DeadlockDetectedError, asyncpg.exceptions.DuplicateObjectError) as e:
        await log_warning(f"Игнорируем ошибку инициализации схемы (гонка процессов): {e}")
        return

    await log_info("Схема БД успешно применена", type_msg=TypeMsg.INFO)


async def close_db() -> None:
    """Закрывает подключение к базе данных."""
    await get_db().disconnect()
