import asyncio
import logging
import random
import time
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple, Union

from ..config import REVIEW
from ..database.models import User
from ..database.repository import ItemRepository, UserRepository
from ..utils.spaced_repetition import SpacedRepetitionCalculator
from ..utils.vocabulary_loader import Vocabulary
from .distractors import DistractorGenerator
from .errors import InsufficientVocabularyError, ItemNotFoundError, ReviewError, UnknownLanguageError
from .events import AnswerSubmitted, ReviewEvent, SetLanguage, StartReview, encode_answer_token
from .selector import CandidateSelector

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class SessionState(Enum):
    IDLE = 'idle'
    PROMPT_BUILT = 'prompt_built'
    AWAITING_ANSWER = 'awaiting_answer'
    SCORED = 'scored'


class NoticeKind(Enum):
    NO_LANGUAGE = 'no-language'
    NONE_DUE = 'none-due'
    INSUFFICIENT_VOCABULARY = 'insufficient-vocabulary'
    UNKNOWN_LANGUAGE = 'unknown-language'
    TURN_ABORTED = 'turn-aborted'


@dataclass(frozen=True)
class Option:
    text: str
    token: str


@dataclass(frozen=True)
class Prompt:
    item_id: int
    language: str
    original_text: str
    options: Tuple[Option, ...]
    progress: Tuple[bool, ...] = ()


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    language: Optional[str] = None


TurnOutcome = Union[Prompt, Notice]


class ReviewSession:
    """
    Runs review turns for every user.

    Each user moves through IDLE -> PROMPT_BUILT -> AWAITING_ANSWER -> SCORED
    and back to IDLE. A per-user lock keeps one user's turns strictly
    sequential; different users never wait on each other. Scoring an answer
    immediately starts the next turn.
    """

    def __init__(
        self,
        items: ItemRepository,
        users: UserRepository,
        vocabulary: Vocabulary,
        rng: Optional[random.Random] = None,
        clock: Callable[[], int] = now_ms,
        progress_marks: int = REVIEW['progress_marks'],
        option_count: int = REVIEW['option_count'],
    ):
        self.items = items
        self.users = users
        self.vocabulary = vocabulary
        self.rng = rng or random.Random()
        self.clock = clock
        self.progress_marks = progress_marks
        self.distractor_count = option_count - 1

        self.selector = CandidateSelector(items)
        self.distractor_generator = DistractorGenerator(items, rng=self.rng)

        # Only users with a turn in flight have entries here; IDLE users are dropped
        self._states: Dict[int, SessionState] = {}
        self._pending: Dict[int, Prompt] = {}
        # A lock lives while some coroutine holds or waits on it
        self._locks: 'weakref.WeakValueDictionary[int, asyncio.Lock]' = weakref.WeakValueDictionary()

    def _lock_for(self, user_telegram_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_telegram_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_telegram_id] = lock
        return lock

    def state(self, user_telegram_id: int) -> SessionState:
        return self._states.get(user_telegram_id, SessionState.IDLE)

    def pending_prompt(self, user_telegram_id: int) -> Optional[Prompt]:
        return self._pending.get(user_telegram_id)

    async def handle(self, event: ReviewEvent) -> TurnOutcome:
        if isinstance(event, StartReview):
            return await self.start_turn(event.user_telegram_id)
        if isinstance(event, AnswerSubmitted):
            return await self.submit_answer(event)
        if isinstance(event, SetLanguage):
            return await self.set_language(event.user_telegram_id, event.language)
        raise TypeError(f"Unsupported review event: {event!r}")

    async def start_turn(self, user_telegram_id: int) -> TurnOutcome:
        async with self._lock_for(user_telegram_id):
            return await self._guarded(user_telegram_id, self._start_turn(user_telegram_id))

    async def submit_answer(self, event: AnswerSubmitted) -> TurnOutcome:
        async with self._lock_for(event.user_telegram_id):
            return await self._guarded(event.user_telegram_id, self._answer(event))

    async def set_language(self, user_telegram_id: int, language: str) -> TurnOutcome:
        async with self._lock_for(user_telegram_id):
            return await self._guarded(user_telegram_id, self._set_language(user_telegram_id, language))

    async def _guarded(self, user_telegram_id: int, turn) -> TurnOutcome:
        try:
            return await turn
        except ReviewError as e:
            logger.error(f"Review turn for user {user_telegram_id} aborted: {e}")
            return self._abort(user_telegram_id, NoticeKind.TURN_ABORTED)
        except Exception:
            self._to_idle(user_telegram_id)
            raise

    def _to_idle(self, user_telegram_id: int):
        self._states.pop(user_telegram_id, None)
        self._pending.pop(user_telegram_id, None)

    def _abort(self, user_telegram_id: int, kind: NoticeKind, language: Optional[str] = None) -> Notice:
        self._to_idle(user_telegram_id)
        return Notice(kind=kind, language=language)

    async def _start_turn(self, user_telegram_id: int) -> TurnOutcome:
        user = await self.users.get_user(user_telegram_id, progress_limit=self.progress_marks)
        if user is None or not user.language:
            return self._abort(user_telegram_id, NoticeKind.NO_LANGUAGE)
        return await self._build_prompt(user)

    async def _build_prompt(self, user: User) -> TurnOutcome:
        language = user.language
        item = await self.selector.next_due(user.telegram_id, language, self.clock())
        if item is None:
            return self._abort(user.telegram_id, NoticeKind.NONE_DUE, language)

        try:
            distractors = await self.distractor_generator.distractor_items(item, pool_limit=self.distractor_count)
        except InsufficientVocabularyError as e:
            logger.warning(f"Cannot quiz user {user.telegram_id}: {e}")
            return self._abort(user.telegram_id, NoticeKind.INSUFFICIENT_VOCABULARY, language)

        choices = [(item.id, item.target)] + distractors
        self.rng.shuffle(choices)

        prompt = Prompt(
            item_id=item.id,
            language=language,
            original_text=item.original,
            options=tuple(
                Option(text=text, token=encode_answer_token(item.id, language, choice_id, item.schedule_version))
                for choice_id, text in choices
            ),
            progress=tuple(user.progress[-self.progress_marks:]) if self.progress_marks > 0 else (),
        )
        self._states[user.telegram_id] = SessionState.PROMPT_BUILT

        # Handed to the transport; the turn now waits for an answer with no timeout
        self._pending[user.telegram_id] = prompt
        self._states[user.telegram_id] = SessionState.AWAITING_ANSWER
        return prompt

    async def _answer(self, event: AnswerSubmitted) -> TurnOutcome:
        user_telegram_id = event.user_telegram_id
        item = await self.items.find_by_id(event.item_id, user_telegram_id, event.language)
        if item is None:
            raise ItemNotFoundError(event.item_id, user_telegram_id, event.language)

        # The item was scored after this prompt was built (double tap, or an older keyboard)
        if event.schedule_version != item.schedule_version:
            logger.info(f"Ignoring stale answer from user {user_telegram_id} for item {item.id}")
            pending = self._pending.get(user_telegram_id)
            if pending is not None:
                return pending
            return self._abort(user_telegram_id, NoticeKind.TURN_ABORTED)

        if event.chosen_item_id == item.id:
            chosen_text = item.target
        else:
            chosen = await self.items.find_by_id(event.chosen_item_id, user_telegram_id, event.language)
            if chosen is None:
                raise ItemNotFoundError(event.chosen_item_id, user_telegram_id, event.language)
            chosen_text = chosen.target

        self._states[user_telegram_id] = SessionState.SCORED
        is_correct = chosen_text == item.target
        schedule = SpacedRepetitionCalculator.update(item.schedule, is_correct, self.clock())

        await self.items.upsert(
            item.key,
            next_review=schedule.next_review,
            interval=schedule.interval,
            ease_factor=schedule.ease_factor,
        )
        await self.users.append_progress(user_telegram_id, is_correct)

        self._to_idle(user_telegram_id)
        logger.info(
            f"User {user_telegram_id} answered item {item.id} ({item.language}) "
            f"{'correctly' if is_correct else 'incorrectly'}; next review at {schedule.next_review}"
        )

        return await self._start_turn(user_telegram_id)

    async def _set_language(self, user_telegram_id: int, language: str) -> TurnOutcome:
        try:
            entries = self.vocabulary.entries(language)
        except UnknownLanguageError as e:
            logger.warning(f"User {user_telegram_id} picked an unavailable language: {e}")
            return self._abort(user_telegram_id, NoticeKind.UNKNOWN_LANGUAGE, language)

        await self.items.upsert_vocabulary(user_telegram_id, language, entries)
        await self.users.set_user_language(user_telegram_id, language)
        logger.info(f"User {user_telegram_id} is now studying {language}")

        return await self._start_turn(user_telegram_id)
