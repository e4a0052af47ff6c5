# manages the connection pool, provides helper methods internal to db package
import asyncio
import os.path
from contextlib import asynccontextmanager
from sqlite3 import Row
from typing import AsyncIterator, Optional, Set

import aiosqlite

from utils.config import load_settings
from utils.errors import TransientStoreError
from utils.logger import get_logger

_logger = get_logger(__name__)

_settings = load_settings()
_SQL_DIR = os.path.dirname(os.path.abspath(__file__))

DB_PATH = _settings.db_path
POOL_SIZE = _settings.pool_size
BUSY_TIMEOUT = _settings.busy_timeout
SEED = _settings.seed
DB_INIT_SCRIPTS = [os.path.join(_SQL_DIR, "schema.sql")]
DB_SEED_SCRIPTS = [os.path.join(_SQL_DIR, "seed-data.sql")]

_initialized = False
_init_lock: Optional[asyncio.Lock] = None
_pool: Optional["ConnectionPool"] = None


class ConnectionPool:
    """Fixed-size pool of reusable aiosqlite connections.

    At most ``size`` connections exist at once; callers beyond that wait in
    acquire() until a connection is released.
    """

    def __init__(self, path: str, size: int, timeout: float) -> None:
        self.path = path
        self.size = size
        self.timeout = timeout
        self._slots = asyncio.Semaphore(size)
        self._idle: "asyncio.Queue[aiosqlite.Connection]" = asyncio.Queue()
        self._conns: Set[aiosqlite.Connection] = set()

    async def _open(self) -> aiosqlite.Connection:
        # timeout is sqlite's busy timeout: how long a writer waits for the lock
        conn = await aiosqlite.connect(self.path, timeout=self.timeout)
        conn.row_factory = Row
        await conn.execute("PRAGMA foreign_keys = ON;")
        self._conns.add(conn)
        _logger.debug(f"Opened connection {len(self._conns)}/{self.size}")
        return conn

    async def acquire(self) -> aiosqlite.Connection:
        await self._slots.acquire()
        try:
            try:
                return self._idle.get_nowait()
            except asyncio.QueueEmpty:
                return await self._open()
        except BaseException:
            self._slots.release()
            raise

    async def release(self, conn: aiosqlite.Connection) -> None:
        try:
            if conn.in_transaction:
                await conn.rollback()
            self._idle.put_nowait(conn)
        except (aiosqlite.Error, ValueError) as e:
            _logger.warning(f"Discarding broken connection: {e}")
            self._conns.discard(conn)
            await self._discard(conn)
        finally:
            self._slots.release()

    async def _discard(self, conn: aiosqlite.Connection) -> None:
        try:
            await conn.close()
        except (aiosqlite.Error, ValueError) as e:
            _logger.debug(f"Error while closing connection: {e}")

    async def close(self) -> None:
        conns, self._conns = list(self._conns), set()
        for conn in conns:
            await self._discard(conn)
        _logger.debug(f"Closed {len(conns)} pooled connection(s)")


async def _run_scripts(conn: aiosqlite.Connection, scripts) -> None:
    for script in scripts:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Initializing database with script {os.path.basename(script)}...")
        with open(script, "r") as f:
            await conn.executescript(f.read())
    await conn.commit()


async def _init_db(conn: aiosqlite.Connection) -> None:
    await conn.execute("PRAGMA journal_mode = WAL;")
    await _run_scripts(conn, DB_INIT_SCRIPTS)
    if SEED:
        await _run_scripts(conn, DB_SEED_SCRIPTS)


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


# sqlite messages for failures worth retrying: lock contention or an unreachable file
TRANSIENT_MESSAGES = ("locked", "busy", "unable to open")


def _is_transient(exc: aiosqlite.OperationalError) -> bool:
    message = str(exc).lower()
    return any(part in message for part in TRANSIENT_MESSAGES)


async def _get_pool() -> ConnectionPool:
    """Create the pool on first use and make sure the schema exists."""
    global _initialized, _init_lock, _pool
    if _pool is not None and _initialized:
        return _pool
    if _init_lock is None:
        _init_lock = asyncio.Lock()
    async with _init_lock:
        if _pool is None:
            folder = os.path.dirname(DB_PATH)
            if folder:
                os.makedirs(folder, exist_ok=True)
            _pool = ConnectionPool(DB_PATH, POOL_SIZE, BUSY_TIMEOUT)
        if not _initialized:
            conn = await _pool.acquire()
            try:
                if not await _table_exists(conn, "orders"):
                    _logger.info("Initializing database...")
                    await _init_db(conn)
            finally:
                await _pool.release(conn)
            _initialized = True
    return _pool


@asynccontextmanager
async def connect() -> AsyncIterator[aiosqlite.Connection]:
    """Async context manager lending a pooled aiosqlite connection with FK enabled.

    Ensures the database is initialized (tables and seed data) on first use.
    Lock timeouts and an unreachable database surface as TransientStoreError.
    """
    try:
        pool = await _get_pool()
        conn = await pool.acquire()
    except aiosqlite.OperationalError as e:
        if not _is_transient(e):
            raise
        _logger.error(f"Database unavailable: {e}")
        raise TransientStoreError("Database unavailable, please retry.") from e
    try:
        yield conn
    except aiosqlite.OperationalError as e:
        if not _is_transient(e):
            raise
        _logger.warning(f"Database operation failed: {e}")
        raise TransientStoreError("Database busy, please retry.") from e
    finally:
        await pool.release(conn)


@asynccontextmanager
async def transaction() -> AsyncIterator[aiosqlite.Connection]:
    """Run the block inside BEGIN IMMEDIATE ... COMMIT.

    BEGIN IMMEDIATE takes the database write lock up front, so every row read
    inside the block stays locked against other writers until commit. Any
    exception rolls the whole block back.
    """
    async with connect() as conn:
        await conn.execute("BEGIN IMMEDIATE;")
        try:
            yield conn
        except BaseException:
            await conn.rollback()
            raise
        await conn.commit()


async def ping() -> None:
    """Round trip to the database; raises TransientStoreError when it is down."""
    async with connect() as conn:
        cur = await conn.execute("SELECT 1;")
        await cur.fetchone()
        await cur.close()


async def close_pool() -> None:
    """Close every pooled connection; the next connect() starts over."""
    global _initialized, _init_lock, _pool
    pool, _pool = _pool, None
    _initialized = False
    _init_lock = None
    if pool is not None:
        await pool.close()
