from typing import Optional

from ..config import SCHEDULING
from ..database.models import Schedule


class SpacedRepetitionCalculator:

    INITIAL_INTERVAL = SCHEDULING['initial_interval']
    INITIAL_EASE_FACTOR = SCHEDULING['initial_ease_factor']
    MIN_EASE_FACTOR = SCHEDULING['min_ease_factor']
    EASE_INCREMENT = SCHEDULING['ease_increment']
    EASE_DECREMENT = SCHEDULING['ease_decrement']
    LAPSE_MULTIPLIER = SCHEDULING['lapse_multiplier']

    @staticmethod
    def initial_schedule(now: int) -> Schedule:
        return Schedule(
            next_review=now,
            interval=SpacedRepetitionCalculator.INITIAL_INTERVAL,
            ease_factor=SpacedRepetitionCalculator.INITIAL_EASE_FACTOR,
        )

    @staticmethod
    def update(schedule: Optional[Schedule], is_correct: bool, now: int) -> Schedule:
        """
        Return the schedule that follows a review answered at `now` (epoch ms).

        The current interval is spent first (next_review = now + interval),
        then the interval grows by the ease factor on a correct answer or by
        the fixed lapse multiplier on a wrong one.
        """
        if schedule is None:
            schedule = SpacedRepetitionCalculator.initial_schedule(now)

        next_review = now + schedule.interval

        if is_correct:
            new_interval = round(schedule.interval * schedule.ease_factor)
            new_ease_factor = schedule.ease_factor + SpacedRepetitionCalculator.EASE_INCREMENT
        else:
            new_interval = round(schedule.interval * SpacedRepetitionCalculator.LAPSE_MULTIPLIER)
            new_ease_factor = max(schedule.ease_factor - SpacedRepetitionCalculator.EASE_DECREMENT,
                                  SpacedRepetitionCalculator.MIN_EASE_FACTOR)

        # Stored rows below the floor are lifted back to it
        new_ease_factor = max(round(new_ease_factor, 6), SpacedRepetitionCalculator.MIN_EASE_FACTOR)

        return Schedule(
            next_review=next_review,
            interval=max(0, int(new_interval)),
            ease_factor=new_ease_factor,
        )

