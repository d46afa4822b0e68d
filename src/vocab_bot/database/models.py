from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Schedule:
    """Scheduling state of an item that has been reviewed at least once."""
    next_review: int  # epoch milliseconds
    interval: int  # milliseconds
    ease_factor: float


ItemKey = Tuple[int, int, str]  # (item_id, user_telegram_id, language)


@dataclass
class Item:
    id: int
    user_telegram_id: int
    language: str
    original: str
    target: str
    schedule: Optional[Schedule] = None  # None means never scheduled

    @property
    def key(self) -> ItemKey:
        return (self.id, self.user_telegram_id, self.language)

    def is_due(self, now: int) -> bool:
        return self.schedule is None or self.schedule.next_review <= now

    @property
    def schedule_version(self) -> int:
        """Changes every time the item is scored; 0 while never scheduled"""
        return self.schedule.next_review if self.schedule is not None else 0


@dataclass
class User:
    telegram_id: int
    language: Optional[str] = None
    progress: List[bool] = field(default_factory=list)


@dataclass(frozen=True)
class VocabularyEntry:
    id: int
    original: str
    target: str
