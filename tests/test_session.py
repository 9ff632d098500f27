from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from core.events import Signals
from core.leveling import cumulative_experience
from core.state import PlayerState
from engine.config import EngineConfig
from engine.save import SaveStore
from engine.session import MAX_NOTIFICATIONS, GameSession

NOW = datetime(2026, 4, 1, 8, 0, 0)


def _session(config, **kwargs):
    return GameSession(config=config, now=NOW, **kwargs)


def test_fresh_session_starts_at_level_one(config):
    game = _session(config)
    assert game.state.player_level == 1
    assert game.state.exp_per_click == 1.0
    assert game.projects.state_name == "locked"
    assert game.offline_report is None


def test_clicking_levels_up(config):
    game = _session(config)
    for _ in range(100):
        game.click()
    assert game.state.experience == 100
    assert game.state.player_level == 2
    assert game.state.total_clicks == 100


def test_stage_two_unlocks_projects(config):
    game = _session(config, state=PlayerState(experience=999))
    game.click()
    assert game.state.current_stage == 2
    assert "project_system" in game.state.unlocked_features
    assert game.projects.current is not None
    titles = [t for t, _ in game.notifications]
    assert "Project System Unlocked!" in titles
    assert "New Project Started!" in titles


def test_attach_resyncs_level_and_unlocks(config):
    game = _session(config, state=PlayerState(experience=20_000, player_level=1))
    s = game.state
    assert s.player_level == game.progression.calculate_level(20_000)
    assert s.current_stage == 3
    assert s.player_level == 12
    assert {"money", "project_system"} <= s.unlocked_features
    assert "ad_revenue" not in s.unlocked_features
    assert game.projects.state_name == "active"


def test_buy_and_rates(config):
    game = _session(config, state=PlayerState(experience=100, player_level=2))
    assert game.buy("keyboard_practice")
    assert game.state.exp_per_click == 2.0
    assert game.click().experience == 2


def test_tick_pays_auto_income_and_pause(config):
    game = _session(config, state=PlayerState(base_auto_exp=5.0))
    assert game.state.auto_exp == 5.0
    assert game.tick(2.0) == 2
    assert game.state.experience == 10

    game.pause()
    assert game.tick(5.0) == 0
    game.resume()
    assert game.tick(1.0) == 1


def test_save_and_reload(tmp_path, config):
    path = tmp_path / "save.json"
    game = _session(config, store=SaveStore(path))
    for _ in range(30):
        game.click()
    assert game.save(now=NOW)
    game.close()

    again = _session(config, store=SaveStore(path))
    assert again.state.experience == 30
    assert again.state.total_clicks == 30
    assert again.state.save_count == 1


def test_autosave_on_tick(tmp_path):
    cfg = EngineConfig(base_seed=1, critical_chance=0.0, autosave_interval=5.0)
    path = tmp_path / "save.json"
    game = GameSession(config=cfg, store=SaveStore(path), now=NOW)
    game.click()
    game.tick(4.0)
    assert not path.exists()
    game.tick(1.0)
    assert path.exists()


def test_session_without_store_cannot_save(config):
    assert _session(config).save() is False


def test_offline_progress_on_load(config):
    state = PlayerState(base_auto_exp=2.0, last_save_time=NOW - timedelta(hours=1))
    game = _session(config, state=state)
    report = game.offline_report
    assert report is not None
    assert report.experience == int(2.0 * 0.5 * 3600)
    assert "Welcome Back!" in [t for t, _ in game.notifications]


def test_reset(tmp_path, config):
    path = tmp_path / "save.json"
    game = _session(config, store=SaveStore(path))
    game.click()
    game.save(now=NOW)
    game.reset(now=NOW)
    assert game.state.experience == 0
    assert not path.exists()
    assert len(game.notifications) == 0


def test_close_drops_subscriptions(config):
    game = _session(config)
    game.close()
    assert game.bus.subscriber_count(Signals.CLICK_PERFORMED) == 0
    assert game.bus.subscriber_count(Signals.EXPERIENCE_CHANGED) == 0
    assert game.tick(1.0) == 0
    game.close()


def test_same_seed_same_game():
    cfg = EngineConfig(base_seed=2024, critical_chance=0.5)
    a = GameSession(config=cfg, now=NOW)
    b = GameSession(config=cfg, now=NOW)
    for _ in range(300):
        a.click()
        b.click()
    assert a.state.experience == b.state.experience
    assert a.state.experience > 300


def test_sessions_are_isolated(config):
    a = _session(config)
    b = _session(config)
    a.click()
    assert b.state.total_clicks == 0


def test_snapshot(config):
    game = _session(config, state=PlayerState(experience=1500))
    snap = game.snapshot()
    assert snap["state"]["experience"] == 1500
    assert snap["next_stage_threshold"] == 15_000
    assert snap["project"]["difficulty"] in {"easy", "medium"}
    assert snap["project"]["progress"] == 0.0


def test_notifications_keep_flowing_past_the_cap(config):
    game = _session(config)
    seen = []
    seq = game.notification_seq
    for i in range(30):
        game.bus.publish(Signals.NOTIFICATION, f"note {i}", "")
        seen.extend(t for t, _ in game.notifications_since(seq))
        seq = game.notification_seq
    assert seen == [f"note {i}" for i in range(30)]
    assert game.notifications_since(seq) == []

    for i in range(30, 55):
        game.bus.publish(Signals.NOTIFICATION, f"note {i}", "")
    behind = game.notifications_since(seq)
    assert len(behind) == MAX_NOTIFICATIONS
    assert behind[-1][0] == "note 54"


def test_import_same_source_once(config):
    game = _session(config)
    payload = {"meta": {"app": "x"}, "game_state": {"save_version": 2, "experience": 500, "player_level": 1}}
    assert game.import_save(payload, source_id="upload-1", now=NOW)
    assert game.state.experience == 500
    assert game.state.player_level == 4

    game.click()
    assert not game.import_save(payload, source_id="upload-1", now=NOW)
    assert game.state.experience == 501

    assert game.import_save(payload, source_id="upload-2", now=NOW)
    assert game.state.experience == 500


def test_import_legacy_blob(config):
    game = _session(config)
    assert game.import_save({"saveVersion": 1, "experience": 8000, "clickPower": 4.0}, now=NOW)
    assert game.state.player_level == 10
    assert game.state.base_exp_per_click == 4.0
    assert game.offline_report is None


def test_import_rejects_non_objects(config):
    game = _session(config)
    with pytest.raises(ValueError):
        game.import_save({"game_state": [1, 2]}, source_id="bad")
    with pytest.raises(ValueError):
        game.import_save([1, 2])
    assert game.imported_source is None


def test_money_gate_follows_config_level(config):
    cfg = replace(config, money_unlock_level=20)
    game = GameSession(config=cfg, state=PlayerState(experience=20_000), now=NOW)
    assert game.state.player_level == 12
    assert game.balance.unlock_rule("money").required_level == 20
    assert "money" not in game.state.unlocked_features
    assert not game.progression.is_money_unlocked

    curve = game.balance.level_curve
    needed = int(math.ceil(cumulative_experience(20, curve.base_experience, curve.growth)))
    game.progression.add_experience(needed - game.state.experience)
    assert game.state.player_level >= 20
    assert game.progression.is_money_unlocked


def test_tick_ignores_non_finite_deltas(config):
    game = _session(config, state=PlayerState(base_auto_exp=5.0))
    assert game.tick(float("inf")) == 0
    assert game.tick(float("nan")) == 0
    assert game.state.experience == 0
    assert game.tick(1.0) == 1


def test_play_time_achievement_in_a_live_session(config):
    game = _session(replace(config, achievements_enabled=True))
    assert game.state.unlocked_achievements == set()
    game.tick(3600.0)
    assert "play_1h" in game.state.unlocked_achievements
    assert game.snapshot()["achievements"]["unlocked"] >= 1


def test_achievements_can_be_switched_off(config):
    game = _session(config)
    game.click()
    assert game.state.unlocked_achievements == set()
    assert game.bus.subscriber_count(Signals.MILESTONE_REACHED) == 0
