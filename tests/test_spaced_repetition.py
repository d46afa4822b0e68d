import random

from vocab_bot.database.models import Schedule
from vocab_bot.utils.spaced_repetition import SpacedRepetitionCalculator

from conftest import ONE_DAY_MS, T0


class TestSpacedRepetitionCalculator:
    def test_correct_answer_grows_interval_by_ease(self):
        schedule = Schedule(next_review=T0, interval=ONE_DAY_MS, ease_factor=2.5)

        updated = SpacedRepetitionCalculator.update(schedule, True, T0)

        assert updated.next_review == T0 + 86_400_000
        assert updated.interval == 216_000_000
        assert updated.ease_factor == 2.6

    def test_incorrect_answer_uses_lapse_multiplier(self):
        schedule = Schedule(next_review=T0, interval=ONE_DAY_MS, ease_factor=2.5)

        updated = SpacedRepetitionCalculator.update(schedule, False, T0)

        assert updated.next_review == T0 + 86_400_000
        assert updated.interval == 112_320_000
        assert updated.ease_factor == 2.3

    def test_unscheduled_item_starts_from_defaults(self):
        updated = SpacedRepetitionCalculator.update(None, True, T0)

        assert updated.next_review == T0 + ONE_DAY_MS
        assert updated.interval == 216_000_000
        assert updated.ease_factor == 2.6

    def test_unscheduled_item_answered_wrong(self):
        updated = SpacedRepetitionCalculator.update(None, False, T0)

        assert updated.next_review == T0 + ONE_DAY_MS
        assert updated.interval == 112_320_000
        assert updated.ease_factor == 2.3

    def test_ease_factor_floor(self):
        schedule = Schedule(next_review=T0, interval=1000, ease_factor=1.35)

        updated = SpacedRepetitionCalculator.update(schedule, False, T0)

        assert updated.ease_factor == 1.3

    def test_ease_below_floor_is_lifted(self):
        schedule = Schedule(next_review=T0, interval=1000, ease_factor=1.0)

        assert SpacedRepetitionCalculator.update(schedule, False, T0).ease_factor == 1.3

    def test_input_schedule_is_not_modified(self):
        schedule = Schedule(next_review=T0, interval=ONE_DAY_MS, ease_factor=2.5)

        SpacedRepetitionCalculator.update(schedule, True, T0 + 5)

        assert schedule == Schedule(next_review=T0, interval=ONE_DAY_MS, ease_factor=2.5)

    def test_invariants_hold_over_long_histories(self):
        rng = random.Random(42)

        for _ in range(50):
            schedule = None
            now = T0
            for _ in range(40):
                is_correct = rng.random() < 0.6
                previous_ease = schedule.ease_factor if schedule else SpacedRepetitionCalculator.INITIAL_EASE_FACTOR

                schedule = SpacedRepetitionCalculator.update(schedule, is_correct, now)

                assert schedule.ease_factor >= 1.3
                assert isinstance(schedule.interval, int)
                assert schedule.interval >= 0
                if is_correct:
                    assert schedule.ease_factor >= previous_ease
                else:
                    assert schedule.ease_factor <= previous_ease
                now = schedule.next_review
