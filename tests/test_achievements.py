from __future__ import annotations

from dataclasses import replace

import pytest

from balance.schemas import AchievementDef, validate_balance_table
from core.events import Signals
from engine.achievements import ACHIEVEMENT_TITLE, AchievementService
from engine.statistics import StatisticsTracker


@pytest.fixture
def stats(state, bus):
    t = StatisticsTracker(state=state, bus=bus)
    t.start()
    yield t
    t.close()


@pytest.fixture
def achievements(state, bus, balance, progression, stats):
    svc = AchievementService(state=state, bus=bus, balance=balance, progression=progression, stats=stats)
    svc.start()
    yield svc
    svc.close()


def test_first_click_unlocks_once_and_pays(achievements, progression, state, recorder):
    progression.perform_click()
    assert state.unlocked_achievements == {"first_click"}
    assert state.experience == 1 + 10

    progression.perform_click()
    assert state.experience == 12
    assert recorder.count(Signals.ACHIEVEMENT_UNLOCKED) == 1

    notes = [e["args"] for e in recorder.events if e["signal"] == Signals.NOTIFICATION]
    assert notes[0][0] == ACHIEVEMENT_TITLE
    assert "First Click" in notes[0][1]


def test_multiplier_reward_survives_recalculation(achievements, progression, state):
    state.total_money_earned = 1_000_000
    newly = achievements.check("money")

    assert set(newly) == {"money_1000", "money_1m"}
    assert state.multiplier("all") == pytest.approx(1.1)
    progression.recalculate_stats()
    assert state.multiplier("all") == pytest.approx(1.1)


def test_reward_chains_settle_without_deep_nesting(achievements, state):
    state.total_clicks = 10_000
    state.total_money_earned = 1_000_000
    state.total_projects_completed = 100
    state.total_upgrades_purchased = 25

    achievements.check_all()

    assert {"first_click", "click_10000", "money_1m", "project_100", "upgrade_25", "level_10"} <= state.unlocked_achievements
    assert state.multiplier("money") == pytest.approx(1.15)
    assert achievements.check_all() == []


def test_feature_achievement(achievements, state, bus):
    state.unlocked_features.add("money")
    bus.publish(Signals.FEATURE_UNLOCKED, "money")
    assert achievements.is_unlocked("money_unlock")
    assert state.money == 100


def test_speedrun_needs_a_fast_stage_five(achievements, state, bus):
    state.current_stage = 5
    bus.publish(Signals.STAGE_UNLOCKED, 5)
    assert {"stage_2", "stage_5", "special_speedrun"} <= state.unlocked_achievements


def test_slow_stage_five_is_no_speedrun(achievements, state):
    state.current_stage = 5
    state.total_play_time = 4000.0
    assert achievements.check("speedrun") == []
    assert achievements.check("stage")[:2] == ["stage_2", "stage_5"]
    assert not achievements.is_unlocked("special_speedrun")


def test_week_long_streak(achievements, state):
    state.consecutive_days_played = 6
    assert achievements.check("streak") == []
    state.consecutive_days_played = 7
    assert achievements.check("streak")[0] == "special_perfect_week"


def test_play_time_includes_unsaved_ticks(achievements, stats, state):
    state.total_play_time = 3590.0
    stats.tick(15.0)
    assert achievements.check("play_time") == ["play_1h"]


def test_points_completion_and_progress(achievements, progression, balance):
    progression.perform_click()
    assert achievements.total_points() == 10
    assert achievements.completion() == pytest.approx(100.0 / len(balance.achievements))
    assert achievements.progress_value(balance.achievement("click_100")) == 1
    assert achievements.describe_reward(balance.achievement("click_1000")) == "$500, 1.00K exp"


def test_duplicate_achievement_ids_are_rejected(balance):
    extra = AchievementDef("first_click", "Again", "click", 2)
    with pytest.raises(ValueError):
        validate_balance_table(replace(balance, achievements=balance.achievements + (extra,)))


def test_unknown_kind_is_rejected(balance):
    bad = AchievementDef("odd", "Odd", "dance", 1)
    with pytest.raises(ValueError):
        validate_balance_table(replace(balance, achievements=(bad,)))
