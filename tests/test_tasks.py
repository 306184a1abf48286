import random

import pygame

from game.runtime.models import FAMILY_COUNT, FAMILY_MATCH, FAMILY_TYPE, Enhancement, TaskId
from game.tasks.counting import CountingTask, count_letters, count_word
from game.tasks.input_utils import edit_text
from game.tasks.slider import MatchSliderTask, snap
from game.tasks.typing_task import PATTERNS_BY_LEVEL, TypingTask, simplify_pattern, typing_accuracy


def text_event(text):
    return pygame.event.Event(pygame.TEXTINPUT, text=text)


def key_event(key, mod=0):
    return pygame.event.Event(pygame.KEYDOWN, key=key, mod=mod, unicode="")


class TestCounting:
    def test_count_word_ignores_case_and_punctuation(self):
        assert count_word("The cat and the hat. THE end", "the") == 3
        assert count_word("other theme", "the") == 0

    def test_count_letters(self):
        assert count_letters("Anna ate", ("a",)) == 3
        assert count_letters("Anna ate", ("a", "e")) == 4

    def test_exact_count_passes(self):
        task = CountingTask(TaskId(FAMILY_COUNT, 1), None, random.Random(3))
        for ch in str(task.answer):
            task.handle_event(text_event(ch), 100)
        task.handle_event(key_event(pygame.K_RETURN), 1600)
        outcome = task.take_outcome()
        assert outcome.correct
        assert outcome.accuracy_percent == 100.0
        assert outcome.rt_ms == 1500

    def test_near_miss_fails_with_partial_accuracy(self):
        task = CountingTask(TaskId(FAMILY_COUNT, 2), None, random.Random(5))
        task.input_text = str(task.answer + 1)
        outcome = task.submit(0)
        assert not outcome.correct
        assert 0.0 < outcome.accuracy_percent < 100.0

    def test_digits_only_entry(self):
        assert edit_text(text_event("4a2"), "", max_len=4, digits_only=True) == "42"
        assert edit_text(key_event(pygame.K_BACKSPACE), "42") == "4"


class TestSlider:
    def test_snap_clamps_and_rounds(self):
        assert snap(12.0, 0) == 10.0
        assert snap(3.456, 1) == 3.5

    def test_on_target(self):
        task = MatchSliderTask(TaskId(FAMILY_MATCH, 2), None, random.Random(1))
        task.value = task.target
        passed, accuracy, _ = task.evaluate()
        assert passed and accuracy == 100.0

    def test_always_passes_with_distance_accuracy(self):
        task = MatchSliderTask(TaskId(FAMILY_MATCH, 1), None, random.Random(1))
        task.target = 7.0
        task.value = 4.0
        passed, accuracy, response = task.evaluate()
        assert passed
        assert accuracy == 70.0
        assert response == "4"

    def test_arrow_keys_step_by_precision(self):
        task = MatchSliderTask(TaskId(FAMILY_MATCH, 3), None, random.Random(1))
        task.handle_event(key_event(pygame.K_RIGHT), 0)
        assert task.value == 0.01
        task.handle_event(key_event(pygame.K_RIGHT, pygame.KMOD_LSHIFT), 0)
        assert task.value == 0.11

    def test_hidden_value_at_top_level_unless_enhanced(self):
        rng = random.Random(1)
        plain = MatchSliderTask(TaskId(FAMILY_MATCH, 3), None, rng)
        assert not plain.show_value
        boost = Enhancement(kind="enhanced_slider", source_task=TaskId(FAMILY_TYPE, 1))
        assert MatchSliderTask(TaskId(FAMILY_MATCH, 3), boost, rng).enhanced


class TestTyping:
    def test_accuracy_is_positional(self):
        assert typing_accuracy("hello", "hello") == 100.0
        assert typing_accuracy("hellp", "hello") == 80

    def test_simplified_pattern_keeps_letters(self):
        assert simplify_pattern("HeLLo WoRLd") == "hello world"
        assert simplify_pattern("Test@123") == "test"
        assert simplify_pattern("123") == "123"

    def test_enhanced_pattern_is_simplified(self):
        boost = Enhancement(kind="simple_pattern", source_task=TaskId(FAMILY_COUNT, 1))
        task = TypingTask(TaskId(FAMILY_TYPE, 3), boost, random.Random(2))
        assert task.pattern == task.pattern.lower()
        assert task.pattern not in PATTERNS_BY_LEVEL[3]

    def test_needs_exact_match(self):
        task = TypingTask(TaskId(FAMILY_TYPE, 2), None, random.Random(2))
        task.input_text = task.pattern.lower()
        assert not task.submit(0).correct
        task.input_text = task.pattern
        assert task.submit(0).correct
