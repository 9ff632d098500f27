from __future__ import annotations

import io

import pytest

from balance.defaults import DEFAULT_UPGRADES_CSV, default_balance
from balance.parsing import (
    balance_from_mapping,
    load_upgrades_csv,
    parse_unlock_condition,
    read_rows,
    upgrades_from_csv_text,
)
from balance.schemas import UpgradeEffect, normalize_key, validate_upgrade

HEADER = "upgrade_id,category,name,currency_type,base_price,price_multiplier,effect_type,effect_value,max_level,unlock_condition\n"


@pytest.mark.parametrize(
    "raw,level,stage,upgrades",
    [
        ("none", 1, 1, ()),
        ("", 1, 1, ()),
        ("level_5", 5, 1, ()),
        ("stage_3", 1, 3, ()),
        ("upgrade_coffee", 1, 1, ("coffee",)),
        ("stage_3;upgrade_junior_developer", 1, 3, ("junior_developer",)),
        ("Level_4 & stage_2", 4, 2, ()),
    ],
)
def test_parse_unlock_condition(raw, level, stage, upgrades):
    cond = parse_unlock_condition(raw)
    assert cond.required_level == level
    assert cond.required_stage == stage
    assert cond.required_upgrades == upgrades


@pytest.mark.parametrize("raw", ["level_x", "after_lunch", "stage_"])
def test_bad_unlock_condition(raw):
    with pytest.raises(ValueError):
        parse_unlock_condition(raw)


def test_rows_with_same_id_merge_effects():
    upgrades = upgrades_from_csv_text(
        HEADER
        + "dev,team,Dev,money,500,1.15,auto_money,1,0,level_10\n"
        + "dev,team,Dev,money,500,1.15,AutoExp,2,0,level_10\n"
    )
    assert len(upgrades) == 1
    assert [e.type for e in upgrades[0].effects] == ["auto_money", "auto_exp"]
    assert upgrades[0].unlimited


def test_quoted_fields_and_aliases():
    upgrades = upgrades_from_csv_text(
        HEADER + 'coffee,Skills,"Coffee, Black",exp,5,1.1,ExperiencePerClick,1,10,none\n'
    )
    u = upgrades[0]
    assert u.name == "Coffee, Black"
    assert u.category == "skills"
    assert u.currency == "experience"
    assert u.effects[0].type == "exp_per_click"


def test_read_rows_skips_malformed_lines():
    rows = read_rows(io.StringIO(HEADER + "a,skills,A,money,1,1.1,auto_money,1,0,none,EXTRA,MORE\n\n"))
    assert rows == []


def test_load_upgrades_csv_from_file(tmp_path):
    path = tmp_path / "upgrades.csv"
    path.write_text(DEFAULT_UPGRADES_CSV, encoding="utf-8")
    upgrades = load_upgrades_csv(path)
    assert [u.id for u in upgrades] == [u.id for u in default_balance().upgrades]


def test_unknown_effect_type_is_rejected():
    u = upgrades_from_csv_text(HEADER + "x,skills,X,money,1,1.1,teleport,1,0,none\n")[0]
    with pytest.raises(ValueError):
        validate_upgrade(u)


def test_effect_values():
    add = UpgradeEffect(type="exp_per_click", value=2.0, scaling=0.5)
    mul = UpgradeEffect(type="money_multiplier", value=1.2)
    flat = UpgradeEffect(type="auto_exp", value=3.0, scales_with_level=False)
    assert add.value_at(4) == pytest.approx(4.0)
    assert mul.value_at(3) == pytest.approx(1.6)
    assert mul.value_at(0) == 1.0
    assert flat.value_at(7) == 3.0


def test_balance_from_mapping_overrides_sections():
    table = balance_from_mapping(
        {
            "level_curve": {"base_experience": 50, "growth": 2.0},
            "project_tuning": {"base_reward": 800},
            "projects": [{"name": "Jam Game", "difficulty": "Medium", "reward_multiplier": 1.2}],
        }
    )
    assert table.level_curve.level_for(150) == 3
    assert table.project_tuning.base_reward == 800
    assert table.project_tuning.base_requirement == 1000
    assert table.projects[0].difficulty == "medium"
    assert table.upgrades == default_balance().upgrades
    assert table.achievements == default_balance().achievements


def test_balance_validation_rejects_bad_stages():
    with pytest.raises(ValueError):
        balance_from_mapping({"stages": {"thresholds": [100, 50]}})


def test_default_balance_is_valid():
    table = default_balance()
    assert len(table.upgrades) == 9
    assert table.upgrade("lead_programmer").unlock.required_upgrades == ("junior_developer",)
    assert table.achievement("first_click").target == 1
    assert len({a.id for a in table.achievements}) == len(table.achievements)


@pytest.mark.parametrize(
    "raw,key",
    [("MoneyPerClick", "money_per_click"), ("money per click", "money_per_click"), ("AUTO_EXP", "auto_exp")],
)
def test_normalize_key(raw, key):
    assert normalize_key(raw) == key
