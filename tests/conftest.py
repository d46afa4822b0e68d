from contextlib import asynccontextmanager

import pytest

from vocab_bot.database.db_manager import DatabaseManager
from vocab_bot.database.models import VocabularyEntry

T0 = 1_700_000_000_000  # epoch ms used as "now" throughout the tests
ONE_DAY_MS = 86_400_000

SPANISH = (
    VocabularyEntry(id=1, original="de", target="of"),
    VocabularyEntry(id=2, original="la", target="the"),
    VocabularyEntry(id=3, original="que", target="that"),
    VocabularyEntry(id=4, original="en", target="in"),
    VocabularyEntry(id=5, original="y", target="and"),
)


class FakeClock:
    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now


class CountingDatabase(DatabaseManager):
    """DatabaseManager that records which item queries were issued."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.item_reads = []

    async def find_by_id(self, *args, **kwargs):
        self.item_reads.append('find_by_id')
        return await super().find_by_id(*args, **kwargs)

    async def find_due(self, *args, **kwargs):
        self.item_reads.append('find_due')
        return await super().find_due(*args, **kwargs)

    async def find_pool(self, *args, **kwargs):
        self.item_reads.append('find_pool')
        return await super().find_pool(*args, **kwargs)


@asynccontextmanager
async def open_database(path, cls=DatabaseManager):
    db = cls(db_path=str(path), pool_size=2)
    await db.connect()
    try:
        yield db
    finally:
        await db.close()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "vocab_test.db"
