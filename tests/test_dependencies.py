from game.dependencies import (
    DEFAULT_RULES,
    EFFECT_ENHANCED_SLIDER,
    EFFECT_HIGHLIGHT,
    EFFECT_SIMPLE_PATTERN,
    DependencyEngine,
)
from game.runtime.models import FAMILY_COUNT, FAMILY_MATCH, FAMILY_TYPE, Enhancement, TaskId, family_tasks


class TestDefaultRules:
    def test_nine_rules_one_per_task(self):
        assert len(DEFAULT_RULES) == 9
        assert len({rule.source_task for rule in DEFAULT_RULES}) == 9

    def test_cycle_and_probabilities(self):
        by_source = {rule.source_task: rule for rule in DEFAULT_RULES}
        rule = by_source[TaskId(FAMILY_MATCH, 2)]
        assert (rule.target_family, rule.effect_kind, rule.probability) == (FAMILY_COUNT, EFFECT_HIGHLIGHT, 0.6)
        rule = by_source[TaskId(FAMILY_TYPE, 3)]
        assert (rule.target_family, rule.effect_kind, rule.probability) == (FAMILY_MATCH, EFFECT_ENHANCED_SLIDER, 0.9)
        rule = by_source[TaskId(FAMILY_COUNT, 1)]
        assert (rule.target_family, rule.effect_kind, rule.probability) == (FAMILY_TYPE, EFFECT_SIMPLE_PATTERN, 0.3)


class TestDependencyEngine:
    def test_activation_fans_out_to_all_target_levels(self, scripted):
        engine = DependencyEngine(rng=scripted([0.1]))
        activations = engine.activate(TaskId(FAMILY_MATCH, 1))
        assert len(activations) == 1
        for task in family_tasks(FAMILY_COUNT):
            enhancement = engine.query(task)
            assert enhancement.kind == EFFECT_HIGHLIGHT
            assert enhancement.source_task == TaskId(FAMILY_MATCH, 1)
        for family in (FAMILY_MATCH, FAMILY_TYPE):
            for task in family_tasks(family):
                assert engine.query(task) is None
        assert engine.active_count() == 3

    def test_draw_at_probability_does_not_fire(self, scripted):
        engine = DependencyEngine(rng=scripted([0.3]))
        assert engine.activate(TaskId(FAMILY_COUNT, 1)) == []
        assert engine.active_count() == 0

    def test_practice_always_fires(self, scripted):
        engine = DependencyEngine(rng=scripted([0.95]))
        assert len(engine.activate(TaskId(FAMILY_COUNT, 1), practice=True)) == 1
        assert engine.query(TaskId(FAMILY_TYPE, 3)).kind == EFFECT_SIMPLE_PATTERN

    def test_one_draw_per_matching_rule(self, scripted):
        rng = scripted([0.5, 0.5])
        engine = DependencyEngine(rng=rng)
        engine.activate(TaskId(FAMILY_TYPE, 1))
        assert rng.draws == [0.5]

    def test_reset_clears_enhancements(self, scripted):
        engine = DependencyEngine(rng=scripted([0.0]))
        engine.activate(TaskId(FAMILY_TYPE, 2))
        engine.reset()
        assert engine.query(TaskId(FAMILY_MATCH, 1)) is None

    def test_level_three_fans_out_between_level_two_and_three_odds(self, scripted):
        engine = DependencyEngine(rng=scripted([0.85]))
        (activation,) = engine.activate(TaskId(FAMILY_MATCH, 3))
        assert activation.draw == 0.85
        for task in family_tasks(FAMILY_COUNT):
            assert engine.query(task) == Enhancement(kind=EFFECT_HIGHLIGHT, source_task=TaskId(FAMILY_MATCH, 3))
        for family in (FAMILY_MATCH, FAMILY_TYPE):
            for task in family_tasks(family):
                assert engine.query(task) is None

    def test_same_draw_misses_at_level_two(self, scripted):
        engine = DependencyEngine(rng=scripted([0.85]))
        assert engine.activate(TaskId(FAMILY_MATCH, 2)) == []
        assert engine.active_count() == 0

    def test_later_level_overwrites_same_target_family(self, scripted):
        engine = DependencyEngine(rng=scripted([0.85, 0.1, 0.85]))
        assert engine.activate(TaskId(FAMILY_MATCH, 1)) == []
        assert len(engine.activate(TaskId(FAMILY_MATCH, 2))) == 1
        assert engine.query(TaskId(FAMILY_COUNT, 1)).source_task == TaskId(FAMILY_MATCH, 2)
        assert len(engine.activate(TaskId(FAMILY_MATCH, 3))) == 1
        for task in family_tasks(FAMILY_COUNT):
            assert engine.query(task).source_task == TaskId(FAMILY_MATCH, 3)
        assert engine.active_count() == 3
