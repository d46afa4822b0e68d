import logging
import random
from typing import List, Optional, Tuple

from ..config import REVIEW
from ..database.models import Item
from ..database.repository import ItemRepository
from .errors import InsufficientVocabularyError

logger = logging.getLogger(__name__)


class DistractorGenerator:
    """
    Samples wrong answers for an item from the same user's word list.

    Candidates never share the item's original word or its target text, so
    the correct translation appears exactly once among the options.
    """

    def __init__(
        self,
        repository: ItemRepository,
        rng: Optional[random.Random] = None,
        pool_size: int = REVIEW['distractor_pool_size'],
        min_distractors: int = REVIEW['min_distractors']
    ):
        self.repository = repository
        self.rng = rng or random.Random()
        self.pool_size = pool_size
        self.min_distractors = max(1, min_distractors)

    async def distractors(self, item: Item, pool_limit: int = 3) -> List[str]:
        return [target for _, target in await self.distractor_items(item, pool_limit)]

    async def distractor_items(self, item: Item, pool_limit: int = 3) -> List[Tuple[int, str]]:
        """(item_id, target) pairs; the ids let answers be resolved without carrying texts"""
        candidates = await self.repository.find_pool(
            item.user_telegram_id,
            item.language,
            exclude_original=item.original,
            limit=max(self.pool_size, pool_limit),
            exclude_target=item.target,
        )
        # Storage should already return distinct targets; keep order while enforcing it
        seen = {item.target}
        unique = []
        for candidate_id, target in candidates:
            if target not in seen:
                seen.add(target)
                unique.append((candidate_id, target))
        candidates = unique

        if len(candidates) < self.min_distractors:
            raise InsufficientVocabularyError(item.id, item.language)

        if len(candidates) <= pool_limit:
            return candidates
        return self.rng.sample(candidates, pool_limit)
