import asyncio
import aiosqlite
from contextlib import asynccontextmanager
import logging

logger = logging.getLogger(__name__)


class DatabasePool:
    """
    Small aiosqlite connection pool.
    Connections are created lazily up to pool_size and reused afterwards.
    """

    def __init__(self, db_path: str = "vocab_bot.db", pool_size: int = 10, cache_size: int = 10000):
        self.db_path = db_path
        self.pool_size = pool_size
        self.cache_size = cache_size
        self._pool = []
        self._used_connections = set()
        self._lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(pool_size)
        self._initialized = False

    async def initialize(self):
        """Open the first connection so configuration errors surface at start-up"""
        if self._initialized:
            return

        async with self._lock:
            if self._initialized:
                return

            self._pool.append(await self._create_connection())
            self._initialized = True
            logger.info(f"Database pool initialized for {self.db_path} (max {self.pool_size} connections)")

    async def _create_connection(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(self.db_path)
        conn.row_factory = aiosqlite.Row

        await conn.execute("PRAGMA journal_mode=WAL")  # Readers don't block the writer
        await conn.execute("PRAGMA synchronous=NORMAL")
        await conn.execute("PRAGMA busy_timeout=5000")
        await conn.execute(f"PRAGMA cache_size={int(self.cache_size)}")
        await conn.execute("PRAGMA temp_store=MEMORY")

        return conn

    @asynccontextmanager
    async def acquire(self):
        """Acquire a connection from the pool"""
        async with self._semaphore:
            async with self._lock:
                if self._pool:
                    conn = self._pool.pop()
                else:
                    # The semaphore guarantees we are below pool_size here
                    conn = await self._create_connection()
                self._used_connections.add(conn)

            try:
                yield conn
            finally:
                async with self._lock:
                    self._used_connections.discard(conn)
                    self._pool.append(conn)

    async def close(self):
        """Close all connections in the pool"""
        async with self._lock:
            for conn in self._pool:
                await conn.close()
            for conn in self._used_connections:
                await conn.close()

            self._pool.clear()
            self._used_connections.clear()
            self._initialized = False

    async def execute(self, query: str, params: tuple = ()):
        async with self.acquire() as conn:
            await conn.execute(query, params)
            await conn.commit()

    async def executemany(self, query: str, params: list):
        async with self.acquire() as conn:
            await conn.executemany(query, params)
            await conn.commit()

    async def executescript(self, script: str):
        async with self.acquire() as conn:
            await conn.executescript(script)
            await conn.commit()

    async def fetchone(self, query: str, params: tuple = ()):
        async with self.acquire() as conn:
            async with conn.execute(query, params) as cursor:
                return await cursor.fetchone()

    async def fetchall(self, query: str, params: tuple = ()):
        async with self.acquire() as conn:
            async with conn.execute(query, params) as cursor:
                return await cursor.fetchall()
