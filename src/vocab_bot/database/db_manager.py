import asyncio
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from .db_pool import DatabasePool
from .models import Item, ItemKey, Schedule, User, VocabularyEntry
from .repository import ItemRepository, UserRepository

logger = logging.getLogger(__name__)

# Item field name -> column name; upsert() only accepts these
ITEM_COLUMNS = {
    'original': 'original',
    'target': 'target',
    'next_review': 'next_review',
    'interval': 'interval_ms',
    'ease_factor': 'ease_factor',
}


class DatabaseManager(ItemRepository, UserRepository):
    """
    SQLite storage for users, their per-language items and the progress log.
    Uses a connection pool and a small user cache.
    """

    def __init__(self, db_path: str = "vocab_bot.db", pool_size: int = 20, cache_size: int = 10000):
        self.pool = DatabasePool(db_path, pool_size, cache_size)
        self._user_cache: Dict[int, Optional[str]] = {}  # telegram_id -> language
        self._cache_lock = asyncio.Lock()

    async def connect(self):
        """Initialize database pool and create tables"""
        await self.pool.initialize()
        await self.initialize_database()

    async def close(self):
        await self.pool.close()

    async def initialize_database(self):
        schema = """
            CREATE TABLE IF NOT EXISTS users (
                telegram_id INTEGER PRIMARY KEY,
                language TEXT,
                created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            ) WITHOUT ROWID;

            CREATE TABLE IF NOT EXISTS items (
                item_id INTEGER NOT NULL,
                user_telegram_id INTEGER NOT NULL,
                language TEXT NOT NULL,
                original TEXT NOT NULL DEFAULT '',
                target TEXT NOT NULL DEFAULT '',
                next_review INTEGER,
                interval_ms INTEGER,
                ease_factor REAL,
                PRIMARY KEY (item_id, user_telegram_id, language)
            ) WITHOUT ROWID;

            CREATE TABLE IF NOT EXISTS progress (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_telegram_id INTEGER NOT NULL,
                is_correct BOOLEAN NOT NULL,
                recorded_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_items_user_review ON items(user_telegram_id, language, next_review);
            CREATE INDEX IF NOT EXISTS idx_progress_user ON progress(user_telegram_id, id DESC);
        """
        await self.pool.executescript(schema)

    # Users

    async def get_user(self, telegram_id: int, progress_limit: Optional[int] = None) -> Optional[User]:
        """Get a user with their most recent progress entries (oldest first)"""
        async with self._cache_lock:
            cached = telegram_id in self._user_cache
            language = self._user_cache.get(telegram_id)

        if not cached:
            row = await self.pool.fetchone(
                "SELECT language FROM users WHERE telegram_id = ?",
                (telegram_id,)
            )
            if not row:
                return None
            language = row['language']
            async with self._cache_lock:
                self._user_cache[telegram_id] = language

        if progress_limit is None:
            rows = await self.pool.fetchall(
                "SELECT is_correct FROM progress WHERE user_telegram_id = ? ORDER BY id DESC",
                (telegram_id,)
            )
        else:
            rows = await self.pool.fetchall(
                "SELECT is_correct FROM progress WHERE user_telegram_id = ? ORDER BY id DESC LIMIT ?",
                (telegram_id, progress_limit)
            )

        progress = [bool(r['is_correct']) for r in reversed(rows)]
        return User(telegram_id=telegram_id, language=language, progress=progress)

    async def set_user_language(self, telegram_id: int, language: str):
        """Create the user if needed and set their study language"""
        await self.pool.execute(
            """INSERT INTO users (telegram_id, language) VALUES (?, ?)
               ON CONFLICT(telegram_id) DO UPDATE SET language = excluded.language""",
            (telegram_id, language)
        )

        async with self._cache_lock:
            self._user_cache[telegram_id] = language

    async def append_progress(self, telegram_id: int, is_correct: bool):
        await self.pool.execute(
            "INSERT INTO progress (user_telegram_id, is_correct) VALUES (?, ?)",
            (telegram_id, is_correct)
        )

    # Items

    @staticmethod
    def _row_to_item(row) -> Item:
        schedule = None
        if row['interval_ms'] is not None and row['ease_factor'] is not None:
            schedule = Schedule(
                next_review=row['next_review'] if row['next_review'] is not None else 0,
                interval=row['interval_ms'],
                ease_factor=row['ease_factor'],
            )
        return Item(
            id=row['item_id'],
            user_telegram_id=row['user_telegram_id'],
            language=row['language'],
            original=row['original'],
            target=row['target'],
            schedule=schedule,
        )

    async def find_by_id(self, item_id: int, user_telegram_id: int, language: str) -> Optional[Item]:
        row = await self.pool.fetchone(
            """SELECT * FROM items
               WHERE item_id = ? AND user_telegram_id = ? AND language = ?""",
            (item_id, user_telegram_id, language)
        )
        return self._row_to_item(row) if row else None

    async def find_due(
        self,
        user_telegram_id: int,
        language: str,
        now: int,
        limit: Optional[int] = None
    ) -> List[Item]:
        query = """SELECT * FROM items
                   WHERE user_telegram_id = ? AND language = ?
                   AND (next_review IS NULL OR next_review <= ?)
                   ORDER BY item_id ASC"""
        params: tuple = (user_telegram_id, language, now)
        if limit is not None:
            query += " LIMIT ?"
            params += (limit,)

        rows = await self.pool.fetchall(query, params)
        return [self._row_to_item(r) for r in rows]

    async def find_pool(
        self,
        user_telegram_id: int,
        language: str,
        exclude_original: str,
        limit: int,
        exclude_target: Optional[str] = None
    ) -> List[Tuple[int, str]]:
        rows = await self.pool.fetchall(
            """SELECT MIN(item_id) AS item_id, target FROM items
               WHERE user_telegram_id = ? AND language = ?
               AND original != ? AND (? IS NULL OR target != ?)
               GROUP BY target
               ORDER BY MIN(item_id) ASC
               LIMIT ?""",
            (user_telegram_id, language, exclude_original, exclude_target, exclude_target, limit)
        )
        return [(r['item_id'], r['target']) for r in rows]

    async def upsert(self, key: ItemKey, **fields: Any):
        unknown = set(fields) - set(ITEM_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown item fields: {', '.join(sorted(unknown))}")

        item_id, user_telegram_id, language = key
        columns = [ITEM_COLUMNS[name] for name in fields]
        values = tuple(fields.values())

        placeholders = ", ".join("?" for _ in columns)
        insert_columns = ", ".join(["item_id", "user_telegram_id", "language"] + columns)
        if columns:
            assignments = ", ".join(f"{c} = excluded.{c}" for c in columns)
            conflict = f"DO UPDATE SET {assignments}"
        else:
            conflict = "DO NOTHING"

        # A single statement, so concurrent upserts on one key never interleave
        await self.pool.execute(
            f"""INSERT INTO items ({insert_columns})
                VALUES (?, ?, ?{', ' + placeholders if columns else ''})
                ON CONFLICT(item_id, user_telegram_id, language) {conflict}""",
            (item_id, user_telegram_id, language) + values
        )

    async def upsert_vocabulary(
        self,
        user_telegram_id: int,
        language: str,
        entries: Iterable[VocabularyEntry]
    ) -> int:
        rows = [
            (entry.id, user_telegram_id, language, entry.original, entry.target)
            for entry in entries
        ]
        if not rows:
            return 0

        await self.pool.executemany(
            """INSERT INTO items (item_id, user_telegram_id, language, original, target)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(item_id, user_telegram_id, language)
               DO UPDATE SET original = excluded.original, target = excluded.target""",
            rows
        )
        logger.info(f"Seeded {len(rows)} {language} items for user {user_telegram_id}")
        return len(rows)
