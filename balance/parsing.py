"""balance.parsing

Balance rows -> typed tables.

Accepts the tabular upgrade export (one row per upgrade) and plain mappings
for the other tables. We only:
- read rows with the csv module (quoted fields, embedded commas)
- normalize keys / enums
- parse unlock-condition strings (level_<N> | stage_<N> | upgrade_<id> | none)
- validate the resulting BalanceTable
"""

from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .schemas import (
    BalanceTable,
    LevelCurve,
    ProjectArchetype,
    ProjectTuning,
    StageTable,
    UnlockCondition,
    UnlockRule,
    UpgradeDef,
    UpgradeEffect,
    _as_float,
    _as_int,
    archetype_from_mapping,
    normalize_category,
    normalize_currency,
    normalize_effect,
    validate_balance_table,
)

logger = logging.getLogger(__name__)

UPGRADE_COLUMNS = (
    "upgrade_id",
    "category",
    "name",
    "currency_type",
    "base_price",
    "price_multiplier",
    "effect_type",
    "effect_value",
    "max_level",
    "unlock_condition",
)

_CONDITION_RE = re.compile(r"^(level|stage|upgrade)_(.+)$", re.IGNORECASE)


def parse_unlock_condition(raw: Any) -> UnlockCondition:
    """Parse one or more `;`/`&`-separated conditions.

    "level_5" -> required_level=5
    "stage_2" -> required_stage=2
    "upgrade_coffee" -> requires upgrade "coffee" at level >= 1
    "none" / "" -> no requirement
    """
    s = str(raw or "").strip()
    if not s or s.lower() == "none":
        return UnlockCondition()

    level = 1
    stage = 1
    reqs: List[str] = []
    for part in re.split(r"[;&]", s):
        part = part.strip()
        if not part or part.lower() == "none":
            continue
        m = _CONDITION_RE.match(part)
        if not m:
            raise ValueError(f"invalid unlock condition: {part!r}")
        kind, arg = m.group(1).lower(), m.group(2).strip()
        if kind == "upgrade":
            reqs.append(arg)
            continue
        if not arg.isdigit():
            raise ValueError(f"invalid unlock condition: {part!r}")
        if kind == "level":
            level = max(level, int(arg))
        else:
            stage = max(stage, int(arg))
    return UnlockCondition(required_level=level, required_stage=stage, required_upgrades=tuple(reqs))


def upgrade_from_row(row: Mapping[str, Any]) -> UpgradeDef:
    """One upgrade row (csv.DictReader shape) -> UpgradeDef."""
    missing = [c for c in ("upgrade_id", "effect_type") if not str(row.get(c) or "").strip()]
    if missing:
        raise ValueError(f"upgrade row missing {missing}")

    uid = str(row["upgrade_id"]).strip()
    scales = str(row.get("scales_with_level", "true") or "true").strip().lower() not in {"0", "false", "no"}
    effect = UpgradeEffect(
        type=normalize_effect(row.get("effect_type")),
        value=_as_float(row.get("effect_value"), 0.0),
        scales_with_level=scales,
        scaling=_as_float(row.get("scaling", 1.0), 1.0),
    )
    return UpgradeDef(
        id=uid,
        name=str(row.get("name") or row.get("name_en") or uid).strip(),
        category=normalize_category(row.get("category")),
        currency=normalize_currency(row.get("currency_type")),
        base_price=_as_float(row.get("base_price"), 0.0),
        price_growth=_as_float(row.get("price_multiplier"), 1.15),
        effects=(effect,),
        max_level=_as_int(row.get("max_level"), 0),
        unlock=parse_unlock_condition(row.get("unlock_condition")),
        description=str(row.get("description") or row.get("description_en") or "").strip(),
    )


def read_rows(source: Union[str, Path, io.TextIOBase]) -> List[Dict[str, str]]:
    """Read CSV rows as dicts; header names are stripped and lower-cased."""
    if isinstance(source, (str, Path)):
        with open(source, newline="", encoding="utf-8-sig") as fh:
            return read_rows(fh)
    reader = csv.DictReader(source)
    rows: List[Dict[str, str]] = []
    for i, raw in enumerate(reader, start=2):
        if None in raw:
            logger.warning("skipping malformed line %d (extra fields)", i)
            continue
        row = {str(k).strip().lower(): (v or "").strip() for k, v in raw.items() if k is not None}
        if not any(row.values()):
            continue
        rows.append(row)
    return rows


def upgrades_from_rows(rows: Iterable[Mapping[str, Any]]) -> Tuple[UpgradeDef, ...]:
    """Merge rows sharing an upgrade_id into one multi-effect upgrade."""
    merged: Dict[str, UpgradeDef] = {}
    order: List[str] = []
    for row in rows:
        u = upgrade_from_row(row)
        if u.id in merged:
            prev = merged[u.id]
            merged[u.id] = replace(prev, effects=prev.effects + u.effects)
            continue
        merged[u.id] = u
        order.append(u.id)
    return tuple(merged[i] for i in order)


def load_upgrades_csv(path: Union[str, Path]) -> Tuple[UpgradeDef, ...]:
    rows = read_rows(path)
    upgrades = upgrades_from_rows(rows)
    logger.info("loaded %d upgrades from %s", len(upgrades), path)
    return upgrades


def upgrades_from_csv_text(text: str) -> Tuple[UpgradeDef, ...]:
    return upgrades_from_rows(read_rows(io.StringIO(text)))


def _unlock_rule_from_mapping(d: Mapping[str, Any]) -> UnlockRule:
    feats = d.get("required_features") or ()
    if isinstance(feats, str):
        feats = [x.strip() for x in feats.split(";") if x.strip()]
    return UnlockRule(
        feature=str(d.get("feature") or d.get("unlock_id") or "").strip(),
        title=str(d.get("title") or d.get("unlock_name") or d.get("feature") or "").strip(),
        description=str(d.get("description", "") or "").strip(),
        required_level=max(1, _as_int(d.get("required_level", 1), 1)),
        required_stage=max(1, _as_int(d.get("required_stage", 1), 1)),
        required_features=tuple(str(x) for x in feats),
    )


def balance_from_mapping(
    data: Mapping[str, Any],
    *,
    upgrades: Optional[Sequence[UpgradeDef]] = None,
    base: Optional[BalanceTable] = None,
) -> BalanceTable:
    """Build a BalanceTable from a config mapping, overriding `base` section by section.

    Recognized keys: level_curve, stages, projects, project_tuning,
    unlock_rules, upgrades (list of upgrade rows).
    """
    from .defaults import default_balance

    b = base or default_balance()

    lc = dict(data.get("level_curve") or {})
    level_curve = LevelCurve(
        base_experience=_as_float(lc.get("base_experience", b.level_curve.base_experience)),
        growth=_as_float(lc.get("growth", b.level_curve.growth)),
    ) if lc else b.level_curve

    st = dict(data.get("stages") or {})
    stages = StageTable(
        thresholds=tuple(int(x) for x in st.get("thresholds", b.stages.thresholds)),
        money_multipliers=tuple(float(x) for x in st.get("money_multipliers", b.stages.money_multipliers)),
        max_stage=_as_int(st.get("max_stage", b.stages.max_stage), b.stages.max_stage),
        overflow_growth=_as_float(st.get("overflow_growth", b.stages.overflow_growth), b.stages.overflow_growth),
    ) if st else b.stages

    pt = dict(data.get("project_tuning") or {})
    tuning = ProjectTuning(
        base_requirement=_as_float(pt.get("base_requirement", b.project_tuning.base_requirement)),
        requirement_growth=_as_float(pt.get("requirement_growth", b.project_tuning.requirement_growth)),
        base_reward=_as_float(pt.get("base_reward", b.project_tuning.base_reward)),
        reward_growth=_as_float(pt.get("reward_growth", b.project_tuning.reward_growth)),
    ) if pt else b.project_tuning

    raw_projects = data.get("projects")
    projects: Tuple[ProjectArchetype, ...] = (
        tuple(archetype_from_mapping(p) for p in raw_projects if isinstance(p, Mapping))
        if isinstance(raw_projects, list)
        else b.projects
    )

    raw_rules = data.get("unlock_rules")
    rules: Tuple[UnlockRule, ...] = (
        tuple(_unlock_rule_from_mapping(r) for r in raw_rules if isinstance(r, Mapping))
        if isinstance(raw_rules, list)
        else b.unlock_rules
    )

    if upgrades is None:
        raw_upgrades = data.get("upgrades")
        upgrades = upgrades_from_rows(raw_upgrades) if isinstance(raw_upgrades, list) else b.upgrades

    table = BalanceTable(
        level_curve=level_curve,
        stages=stages,
        upgrades=tuple(upgrades),
        projects=projects,
        project_tuning=tuning,
        unlock_rules=rules,
        achievements=b.achievements,
    )
    validate_balance_table(table)
    return table
