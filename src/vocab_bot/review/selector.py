import logging
from typing import Optional

from ..database.models import Item
from ..database.repository import ItemRepository

logger = logging.getLogger(__name__)


class CandidateSelector:
    """Picks the next due item: the smallest id among due items."""

    def __init__(self, repository: ItemRepository):
        self.repository = repository

    async def next_due(self, user_telegram_id: int, language: str, now: int) -> Optional[Item]:
        """Return the due item with the lowest id, or None when nothing is due"""
        candidates = await self.repository.find_due(user_telegram_id, language, now, limit=1)

        for item in candidates:
            if item.is_due(now):
                return item
            logger.warning(f"Repository returned item {item.id} which is not due until {item.schedule.next_review}")

        return None
