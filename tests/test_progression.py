from __future__ import annotations

import math

import pytest

from core.events import EventBus, Signals
from core.leveling import cumulative_experience
from core.state import PlayerState
from engine.config import EngineConfig
from engine.progression import ProgressionModel


def _exp_for_level(level: int) -> int:
    return int(math.ceil(cumulative_experience(level, 100.0, 1.5)))


def test_level_scenario(progression, state, recorder):
    assert progression.calculate_level(0) == 1

    progression.add_experience(100)
    assert state.player_level == 2

    progression.add_experience(149)
    assert state.experience == 249
    assert state.player_level == 2

    progression.add_experience(1)
    assert state.player_level == 3
    assert recorder.count(Signals.LEVEL_UP) == 2


def test_add_experience_is_additive(balance, config):
    a = ProgressionModel(state=PlayerState(), bus=EventBus(), balance=balance, config=config)
    b = ProgressionModel(state=PlayerState(), bus=EventBus(), balance=balance, config=config)

    a.add_experience(130)
    a.add_experience(370)
    b.add_experience(500)

    assert a.state.player_level == b.state.player_level
    assert a.state.total_experience_earned == b.state.total_experience_earned == 500


def test_money_locked_below_unlock_level(progression, state):
    state.experience = _exp_for_level(5)
    state.player_level = 5
    state.money_per_click = 25.0

    result = progression.perform_click()

    assert result.money == 0
    assert state.money == 0
    assert result.experience == 1


def test_reaching_level_ten_unlocks_money_once(progression, state, recorder):
    progression.add_experience(_exp_for_level(10))
    assert state.player_level == 10
    assert "money" in state.unlocked_features
    assert progression.is_money_unlocked

    progression.add_experience(_exp_for_level(12) - state.experience)
    assert recorder.count(Signals.FEATURE_UNLOCKED) == 1
    titles = [e["args"][0] for e in recorder.events if e["signal"] == Signals.NOTIFICATION]
    assert titles == ["First Sale!"]


def test_level_up_event_comes_after_feature_unlock(progression, recorder):
    progression.add_experience(_exp_for_level(10))
    signals = [e["signal"] for e in recorder.events]
    assert signals.index(Signals.FEATURE_UNLOCKED) < signals.index(Signals.LEVEL_UP)


def test_click_awards_money_once_unlocked(progression, state):
    progression.add_experience(_exp_for_level(10))
    state.money_per_click = 3.0
    result = progression.perform_click()
    assert result.money == 3
    assert state.money == 3
    assert state.total_clicks == 1


def test_critical_click_doubles_rewards(balance, bus, state, recorder):
    cfg = EngineConfig(critical_chance=1.0, critical_multiplier=2.0)
    model = ProgressionModel(state=state, bus=bus, balance=balance, config=cfg)
    result = model.perform_click(position=(4, 2))
    assert result.critical
    assert result.experience == 2
    crit = [e for e in recorder.events if e["signal"] == Signals.CRITICAL_CLICK]
    assert crit and crit[0]["args"] == [[4, 2]]


def test_click_publishes_click_performed(progression, recorder):
    progression.perform_click()
    performed = [e for e in recorder.events if e["signal"] == Signals.CLICK_PERFORMED]
    assert performed[0]["args"] == [0, 1]


def test_spend_money_is_atomic(progression, state):
    state.money = 50
    assert progression.spend_money(80) is False
    assert state.money == 50
    assert progression.spend_money(30) is True
    assert state.money == 20
    assert progression.spend_money(-1) is False


def test_spend_experience_uses_separate_balance(progression, state):
    progression.add_experience(300)
    level = state.player_level

    assert progression.spend_experience(200) is True
    assert state.experience == 300
    assert state.available_experience == 100
    assert state.player_level == level

    assert progression.spend_experience(150) is False
    assert state.spent_experience == 200


@pytest.mark.parametrize("step,count,expected", [(0.1, 25, 2), (0.25, 8, 2), (1.0, 3, 3), (0.3, 10, 3)])
def test_auto_income_is_discrete(progression, state, step, count, expected):
    state.auto_exp = 3.0
    payouts = sum(progression.tick(step) for _ in range(count))
    assert payouts == expected
    assert state.experience == 3 * expected


def test_large_tick_pays_every_interval(progression, state, recorder):
    state.auto_exp = 2.0
    assert progression.tick(3.5) == 3
    assert state.experience == 6
    assert progression.auto_timer == pytest.approx(0.5)
    assert recorder.count(Signals.AUTO_INCOME_AWARDED) == 3


def test_tick_ignores_non_finite_deltas(progression, state):
    state.auto_exp = 2.0
    assert progression.tick(float("inf")) == 0
    assert progression.tick(float("nan")) == 0
    assert progression.auto_timer == 0.0
    assert progression.tick(1.0) == 1
    assert state.experience == 2


def test_money_gate_reads_the_feature_set(progression, state):
    state.player_level = 15
    assert not progression.is_money_unlocked
    state.unlocked_features.add("money")
    assert progression.is_money_unlocked


def test_auto_money_needs_no_unlock_but_counts_total(progression, state):
    state.auto_money = 4.0
    state.auto_exp = 1.0
    progression.tick(2.0)
    assert state.money == 8
    assert state.total_auto_income == 10


def test_recalculate_stats_from_ledger(progression, state):
    state.upgrade_levels = {"keyboard_practice": 3, "debugging_basics": 2, "junior_developer": 1}
    progression.recalculate_stats()

    assert state.exp_per_click == pytest.approx(4.0)
    assert state.multiplier("exp") == pytest.approx(1.2)
    assert state.auto_money == pytest.approx(1.0)
    assert state.auto_exp == pytest.approx(1.0)
    assert progression.exp_gain_per_click() == pytest.approx(4.8)


def test_recalculate_keeps_base_values(progression, state):
    state.base_exp_per_click = 5.0
    progression.recalculate_stats()
    assert state.exp_per_click == 5.0
    state.upgrade_levels = {}
    progression.recalculate_stats()
    assert state.exp_per_click == 5.0


def test_critical_chance_includes_upgrade_bonus(progression, state):
    state.critical_chance_bonus = 0.25
    assert progression.critical_chance == pytest.approx(0.25)


def test_no_state_is_silent(balance, config, bus):
    model = ProgressionModel(state=None, bus=bus, balance=balance, config=config)
    assert model.perform_click().experience == 0
    assert model.spend_money(1) is False
    assert model.spend_experience(1) is False
    assert model.tick(5.0) == 0
    model.add_money(10)
    model.add_experience(10)
    model.recalculate_stats()
    assert model.money == 0
