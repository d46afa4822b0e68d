"""
Storage interfaces the review core depends on.

Implementations must give read-your-writes per identity triple
(item_id, user_telegram_id, language), and an upsert on one triple must never
expose a partial write to a concurrent upsert on the same triple.
"""
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Tuple

from .models import Item, ItemKey, User, VocabularyEntry


class ItemRepository(ABC):

    @abstractmethod
    async def find_by_id(self, item_id: int, user_telegram_id: int, language: str) -> Optional[Item]:
        ...

    @abstractmethod
    async def find_due(
        self,
        user_telegram_id: int,
        language: str,
        now: int,
        limit: Optional[int] = None
    ) -> List[Item]:
        """Items with next_review <= now or never scheduled, ordered by id."""

    @abstractmethod
    async def find_pool(
        self,
        user_telegram_id: int,
        language: str,
        exclude_original: str,
        limit: int,
        exclude_target: Optional[str] = None
    ) -> List[Tuple[int, str]]:
        """(item_id, target) per distinct target among items whose original differs from exclude_original."""

    @abstractmethod
    async def upsert(self, key: ItemKey, **fields: Any) -> None:
        """Insert the item or overwrite only the given fields of an existing one."""

    @abstractmethod
    async def upsert_vocabulary(
        self,
        user_telegram_id: int,
        language: str,
        entries: Iterable[VocabularyEntry]
    ) -> int:
        """Seed original/target for many items, leaving schedules untouched."""


class UserRepository(ABC):

    @abstractmethod
    async def get_user(self, telegram_id: int, progress_limit: Optional[int] = None) -> Optional[User]:
        ...

    @abstractmethod
    async def set_user_language(self, telegram_id: int, language: str) -> None:
        ...

    @abstractmethod
    async def append_progress(self, telegram_id: int, is_correct: bool) -> None:
        ...
