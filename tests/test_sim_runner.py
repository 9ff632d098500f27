from __future__ import annotations

import json

import pytest

from core.selfcheck import assert_invariants, check_invariants, run_level_curve_smoke
from core.state import PlayerState
from engine.logging import dumps_session_export
from engine.sim_runner import run_headless_sim


def test_headless_sim_keeps_invariants():
    result = run_headless_sim(seconds=240, clicks_per_second=5, seed=123)
    final = result["final"]
    assert result["violations"] == []
    assert final.total_clicks == 240 * 5
    assert final.player_level > 1
    assert final.total_upgrades_purchased > 0
    assert result["level_ups"] >= 1


def test_headless_sim_is_deterministic():
    a = run_headless_sim(seconds=60, seed=5)
    b = run_headless_sim(seconds=60, seed=5)
    assert a["final"].experience == b["final"].experience
    assert a["final"].upgrade_levels == b["final"].upgrade_levels


def test_session_export_is_json():
    result = run_headless_sim(seconds=20)
    text = dumps_session_export(result["export"])
    data = json.loads(text)
    assert data["seed"] == 123
    assert data["initial_state"]["experience"] == 0
    assert data["final_state"]["total_clicks"] == 100
    assert data["event_log"][0]["seq"] == 0


def test_invariant_checker_flags_problems():
    bad = PlayerState(money=-1, experience=50, spent_experience=80, player_level=4)
    problems = check_invariants(bad)
    assert len(problems) == 3
    with pytest.raises(AssertionError):
        assert_invariants(bad)
    assert check_invariants(PlayerState()) == []


def test_level_curve_smoke(capsys):
    run_level_curve_smoke()
    assert "OK" in capsys.readouterr().out
