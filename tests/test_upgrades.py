from __future__ import annotations

import pytest

from core.events import Signals
from engine.upgrades import UpgradeShop


@pytest.fixture
def shop(state, bus, balance, progression):
    return UpgradeShop(state=state, bus=bus, balance=balance, progression=progression)


def test_buy_with_experience(shop, state, balance, recorder):
    state.experience = 100
    upgrade = balance.upgrade("keyboard_practice")
    assert shop.cost(upgrade) == 10

    assert shop.purchase("keyboard_practice") is True

    assert state.spent_experience == 10
    assert state.experience == 100
    assert state.upgrade_levels["keyboard_practice"] == 1
    assert state.total_upgrades_purchased == 1
    assert state.exp_per_click == pytest.approx(2.0)
    assert shop.cost(upgrade) == upgrade.price_at(1)
    bought = [e["args"] for e in recorder.events if e["signal"] == Signals.UPGRADE_PURCHASED]
    assert bought == [["keyboard_practice", 1]]


def test_cannot_afford_leaves_state_untouched(shop, state):
    state.experience = 5
    assert shop.purchase("keyboard_practice") is False
    assert state.spent_experience == 0
    assert state.upgrade_levels == {}


def test_unknown_upgrade(shop, state):
    state.experience = 10_000
    assert shop.purchase("time_machine") is False


def test_level_gate(shop, state, balance):
    state.experience = 10_000
    upgrade = balance.upgrade("debugging_basics")
    assert not shop.is_unlocked(upgrade)
    assert shop.purchase("debugging_basics") is False
    state.player_level = 3
    assert shop.purchase("debugging_basics") is True


def test_upgrade_prerequisite(shop, state, balance):
    state.experience = 100_000
    state.player_level = 5
    upgrade = balance.upgrade("design_patterns")
    assert not shop.is_unlocked(upgrade)
    shop.purchase("debugging_basics")
    assert shop.is_unlocked(upgrade)


def test_money_upgrade_needs_money_feature(shop, state, balance):
    state.player_level = 10
    state.money = 1_000
    upgrade = balance.upgrade("second_monitor")
    assert shop.is_unlocked(upgrade)
    assert not shop.can_afford(upgrade)

    state.unlocked_features.add("money")
    assert shop.purchase("second_monitor") is True
    assert state.money == 950
    assert state.money_per_click == pytest.approx(1.0)


def test_max_level(shop, state, balance):
    state.experience = 10**9
    state.upgrade_levels["keyboard_practice"] = 50
    upgrade = balance.upgrade("keyboard_practice")
    assert shop.is_maxed(upgrade)
    assert shop.purchase("keyboard_practice") is False
    assert upgrade not in shop.available()


def test_unlimited_upgrade_never_maxes(shop, state, balance):
    state.upgrade_levels["junior_developer"] = 500
    assert not shop.is_maxed(balance.upgrade("junior_developer"))


def test_multi_effect_upgrade(shop, state):
    state.player_level = 10
    state.money = 10_000
    state.unlocked_features.add("money")
    assert shop.purchase("junior_developer") is True
    assert state.auto_money == pytest.approx(1.0)
    assert state.auto_exp == pytest.approx(1.0)


def test_available_by_category(shop, state):
    assert [u.id for u in shop.available("skills")] == ["keyboard_practice"]
    assert shop.available("team") == []
    state.player_level = 10
    assert [u.id for u in shop.available("team")] == ["junior_developer"]


def test_price_curve(balance):
    upgrade = balance.upgrade("second_monitor")
    assert upgrade.price_at(0) == 50
    assert upgrade.price_at(3) == int(50 * 1.15 ** 3)
