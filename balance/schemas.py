"""balance.schemas

Contracts for the static balance tables (read-only at runtime):
- LevelCurve / StageTable: progression thresholds
- UpgradeDef + UpgradeEffect: shop items
- ProjectArchetype + ProjectTuning: project loop
- UnlockRule: feature gates
- AchievementDef: one-time goals with rewards
- BalanceTable: the bundle every service reads from

Validation strategy:
Tables are validated once when built (validate_balance_table). A bad table
is a configuration bug, so it raises ValueError instead of degrading.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import AbstractSet, Any, Dict, List, Mapping, Optional, Tuple

from core.difficulty import DEFAULT_DIFFICULTIES, normalize_difficulty
from core.leveling import cumulative_experience, level_from_experience

ALLOWED_CATEGORIES = {"skills", "equipment", "team"}
ALLOWED_CURRENCIES = {"money", "experience"}

ADDITIVE_EFFECTS = {
    "money_per_click",
    "exp_per_click",
    "auto_money",
    "auto_exp",
    "critical_chance",
    "critical_multiplier",
}
MULTIPLIER_EFFECTS = {
    "money_multiplier",
    "exp_multiplier",
    "all_multiplier",
}
ALLOWED_EFFECTS = ADDITIVE_EFFECTS | MULTIPLIER_EFFECTS


def _as_float(x: Any, default: float = 0.0) -> float:
    try:
        return float(x)
    except (TypeError, ValueError):
        return float(default)


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(float(x))
    except (TypeError, ValueError):
        return int(default)


def normalize_key(x: Any) -> str:
    """"MoneyPerClick" / "money per click" / "MONEY_PER_CLICK" -> "money_per_click"."""
    s = str(x or "").strip()
    out: List[str] = []
    for i, ch in enumerate(s):
        if ch.isupper() and i > 0 and (s[i - 1].islower() or s[i - 1].isdigit()):
            out.append("_")
        out.append(ch.lower() if ch.isalnum() else "_")
    key = "".join(out)
    while "__" in key:
        key = key.replace("__", "_")
    return key.strip("_")


def normalize_category(x: Any, default: str = "skills") -> str:
    c = normalize_key(x)
    return c if c in ALLOWED_CATEGORIES else default


def normalize_currency(x: Any, default: str = "money") -> str:
    c = normalize_key(x)
    aliases = {"exp": "experience", "xp": "experience", "gold": "money", "cash": "money"}
    c = aliases.get(c, c)
    return c if c in ALLOWED_CURRENCIES else default


def normalize_effect(x: Any) -> str:
    e = normalize_key(x)
    aliases = {
        "click_critical_chance": "critical_chance",
        "click_critical_multiplier": "critical_multiplier",
        "auto_experience": "auto_exp",
        "experience_per_click": "exp_per_click",
        "experience_multiplier": "exp_multiplier",
    }
    return aliases.get(e, e)


# =========================
# Progression tables
# =========================


@dataclass(frozen=True)
class LevelCurve:
    base_experience: float = 100.0
    growth: float = 1.5

    def level_for(self, experience: int) -> int:
        return level_from_experience(experience, self.base_experience, self.growth)

    def experience_for(self, level: int) -> float:
        return cumulative_experience(level, self.base_experience, self.growth)


@dataclass(frozen=True)
class StageTable:
    """thresholds[i] = cumulative experience required to reach stage i + 2."""

    thresholds: Tuple[int, ...] = (1000, 15000, 225000, 3375000, 50625000, 759375000)
    money_multipliers: Tuple[float, ...] = (1.0, 1.2, 1.5, 2.0, 3.0, 5.0, 8.0, 12.0, 18.0, 25.0)
    max_stage: int = 10
    overflow_growth: float = 15.0

    def threshold_for(self, stage: int) -> int:
        """Experience needed to be at `stage` (stage 1 -> 0)."""
        if stage <= 1:
            return 0
        idx = stage - 2
        if idx < len(self.thresholds):
            return int(self.thresholds[idx])
        extra = idx - len(self.thresholds) + 1
        return int(self.thresholds[-1] * self.overflow_growth ** extra)

    def money_multiplier(self, stage: int) -> float:
        if not self.money_multipliers:
            return 1.0
        if stage <= 0 or stage - 1 >= len(self.money_multipliers):
            return float(self.money_multipliers[-1])
        return float(self.money_multipliers[stage - 1])

    def stage_for(self, experience: int) -> int:
        stage = 1
        while stage < self.max_stage and experience >= self.threshold_for(stage + 1):
            stage += 1
        return stage


# =========================
# Upgrades
# =========================


@dataclass(frozen=True)
class UnlockCondition:
    required_level: int = 1
    required_stage: int = 1
    required_upgrades: Tuple[str, ...] = ()

    def is_met(self, *, level: int, stage: int, purchased: Mapping[str, int]) -> bool:
        if level < self.required_level or stage < self.required_stage:
            return False
        return all(int(purchased.get(u, 0)) > 0 for u in self.required_upgrades)


@dataclass(frozen=True)
class UpgradeEffect:
    type: str
    value: float
    scales_with_level: bool = True
    scaling: float = 1.0

    @property
    def is_multiplier(self) -> bool:
        return self.type in MULTIPLIER_EFFECTS

    def value_at(self, level: int) -> float:
        """Total effect contributed by an upgrade owned at `level`.

        Additive: value * level * scaling. Multiplier: 1 + (value - 1) * level * scaling.
        Level 0 contributes nothing (0 or x1).
        """
        if level <= 0:
            return 1.0 if self.is_multiplier else 0.0
        if not self.scales_with_level:
            return float(self.value)
        if self.is_multiplier:
            return 1.0 + (float(self.value) - 1.0) * level * float(self.scaling)
        return float(self.value) * level * float(self.scaling)


@dataclass(frozen=True)
class UpgradeDef:
    id: str
    name: str
    category: str
    currency: str
    base_price: float
    price_growth: float
    effects: Tuple[UpgradeEffect, ...]
    max_level: int = 0  # <= 0: unlimited
    unlock: UnlockCondition = field(default_factory=UnlockCondition)
    description: str = ""

    def price_at(self, level: int) -> int:
        return int(float(self.base_price) * float(self.price_growth) ** max(0, int(level)))

    @property
    def unlimited(self) -> bool:
        return self.max_level <= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "currency": self.currency,
            "base_price": float(self.base_price),
            "price_growth": float(self.price_growth),
            "effects": [
                {"type": e.type, "value": float(e.value), "scales_with_level": e.scales_with_level, "scaling": float(e.scaling)}
                for e in self.effects
            ],
            "max_level": int(self.max_level),
            "unlock": {
                "required_level": int(self.unlock.required_level),
                "required_stage": int(self.unlock.required_stage),
                "required_upgrades": list(self.unlock.required_upgrades),
            },
            "description": self.description,
        }


# =========================
# Projects / unlocks
# =========================


@dataclass(frozen=True)
class ProjectArchetype:
    name: str
    difficulty: str = "easy"
    reward_multiplier: float = 1.0
    min_stage: int = 1
    description: str = ""
    icon: str = ""


@dataclass(frozen=True)
class ProjectTuning:
    base_requirement: float = 1000.0
    requirement_growth: float = 1.5
    base_reward: float = 500.0
    reward_growth: float = 1.3


@dataclass(frozen=True)
class UnlockRule:
    feature: str
    title: str
    description: str = ""
    required_level: int = 1
    required_stage: int = 1
    required_features: Tuple[str, ...] = ()

    def is_met(self, *, level: int, stage: int, unlocked: AbstractSet[str]) -> bool:
        if level < self.required_level or stage < self.required_stage:
            return False
        return all(f in unlocked for f in self.required_features)


# =========================
# Achievements
# =========================

# What an achievement's target is compared against.
ACHIEVEMENT_KINDS = {
    "click",        # total_clicks
    "money",        # total_money_earned
    "experience",   # total_experience_earned
    "level",        # player_level
    "stage",        # current_stage
    "project",      # total_projects_completed
    "upgrade",      # total_upgrades_purchased
    "play_time",    # seconds played
    "feature",      # `feature` is unlocked (target unused)
    "speedrun",     # stage >= target within SPEEDRUN_SECONDS of play
    "streak",       # consecutive days played
}

RARITY_POINTS = {"common": 10, "uncommon": 25, "rare": 50, "epic": 100, "legendary": 200}

SPEEDRUN_SECONDS = 3600.0


@dataclass(frozen=True)
class AchievementDef:
    id: str
    name: str
    kind: str
    target: int = 0
    description: str = ""
    rarity: str = "common"
    money_reward: int = 0
    exp_reward: int = 0
    # applied as (1 + value) to the `multiplier_key` multiplier while unlocked
    multiplier_reward: float = 0.0
    multiplier_key: str = "all"
    reward_description: str = ""
    feature: str = ""

    @property
    def points(self) -> int:
        return RARITY_POINTS.get(self.rarity, 0)


def validate_achievement(a: AchievementDef) -> None:
    if not a.id or not a.id.strip():
        raise ValueError("achievement.id must be non-empty")
    if a.kind not in ACHIEVEMENT_KINDS:
        raise ValueError(f"achievement {a.id}: unknown kind {a.kind!r}")
    if a.kind == "feature" and not a.feature:
        raise ValueError(f"achievement {a.id}: feature achievements need a feature")
    if a.rarity not in RARITY_POINTS:
        raise ValueError(f"achievement {a.id}: invalid rarity {a.rarity!r}")
    if a.target < 0 or a.money_reward < 0 or a.exp_reward < 0 or a.multiplier_reward < 0:
        raise ValueError(f"achievement {a.id}: targets and rewards must be >= 0")
    if a.multiplier_key not in ("money", "exp", "all"):
        raise ValueError(f"achievement {a.id}: invalid multiplier_key {a.multiplier_key!r}")


@dataclass(frozen=True)
class BalanceTable:
    level_curve: LevelCurve
    stages: StageTable
    upgrades: Tuple[UpgradeDef, ...]
    projects: Tuple[ProjectArchetype, ...]
    project_tuning: ProjectTuning
    unlock_rules: Tuple[UnlockRule, ...]
    achievements: Tuple[AchievementDef, ...] = ()

    def achievement(self, achievement_id: str) -> Optional[AchievementDef]:
        for a in self.achievements:
            if a.id == achievement_id:
                return a
        return None

    def with_rule_level(self, feature: str, level: int) -> "BalanceTable":
        """Copy of the table with `feature`'s rule requiring `level` (no-op if already so)."""
        rule = self.unlock_rule(feature)
        if rule is None or rule.required_level == int(level):
            return self
        rules = tuple(replace(r, required_level=int(level)) if r.feature == feature else r for r in self.unlock_rules)
        return replace(self, unlock_rules=rules)

    def upgrade(self, upgrade_id: str) -> Optional[UpgradeDef]:
        for u in self.upgrades:
            if u.id == upgrade_id:
                return u
        return None

    def upgrades_in(self, category: str) -> List[UpgradeDef]:
        cat = normalize_category(category)
        return [u for u in self.upgrades if u.category == cat]

    def unlock_rule(self, feature: str) -> Optional[UnlockRule]:
        for r in self.unlock_rules:
            if r.feature == feature:
                return r
        return None


def validate_upgrade(u: UpgradeDef) -> None:
    if not u.id or not u.id.strip():
        raise ValueError("upgrade.id must be non-empty")
    if u.category not in ALLOWED_CATEGORIES:
        raise ValueError(f"upgrade {u.id}: invalid category {u.category!r}")
    if u.currency not in ALLOWED_CURRENCIES:
        raise ValueError(f"upgrade {u.id}: invalid currency {u.currency!r}")
    if u.base_price < 0:
        raise ValueError(f"upgrade {u.id}: base_price must be >= 0")
    if u.price_growth < 1.0:
        raise ValueError(f"upgrade {u.id}: price_growth must be >= 1.0")
    if not u.effects:
        raise ValueError(f"upgrade {u.id}: needs at least one effect")
    for e in u.effects:
        if e.type not in ALLOWED_EFFECTS:
            raise ValueError(f"upgrade {u.id}: unknown effect type {e.type!r}")
        if e.is_multiplier and e.value < 0:
            raise ValueError(f"upgrade {u.id}: multiplier effect must be >= 0")


def validate_balance_table(b: BalanceTable) -> None:
    if b.level_curve.base_experience <= 0:
        raise ValueError("level_curve.base_experience must be > 0")
    if b.level_curve.growth < 1.0:
        raise ValueError("level_curve.growth must be >= 1.0")

    th = list(b.stages.thresholds)
    if not th:
        raise ValueError("stages.thresholds must not be empty")
    if any(x <= 0 for x in th):
        raise ValueError("stages.thresholds must be > 0")
    if any(later <= earlier for earlier, later in zip(th, th[1:])):
        raise ValueError("stages.thresholds must be strictly increasing")
    if b.stages.max_stage < 1:
        raise ValueError("stages.max_stage must be >= 1")
    if b.stages.overflow_growth < 1.0:
        raise ValueError("stages.overflow_growth must be >= 1.0")
    if any(m < 0 for m in b.stages.money_multipliers):
        raise ValueError("stages.money_multipliers must be >= 0")

    ids = [u.id for u in b.upgrades]
    if len(set(ids)) != len(ids):
        raise ValueError("upgrade ids must be unique")
    known = set(ids)
    for u in b.upgrades:
        validate_upgrade(u)
        missing = [r for r in u.unlock.required_upgrades if r not in known]
        if missing:
            raise ValueError(f"upgrade {u.id}: unknown prerequisite(s) {missing}")

    if not b.projects:
        raise ValueError("at least one project archetype is required")
    for p in b.projects:
        if p.difficulty not in DEFAULT_DIFFICULTIES:
            raise ValueError(f"project {p.name}: invalid difficulty {p.difficulty!r}")
        if p.reward_multiplier < 0:
            raise ValueError(f"project {p.name}: reward_multiplier must be >= 0")

    t = b.project_tuning
    if t.base_requirement <= 0:
        raise ValueError("project_tuning.base_requirement must be > 0")
    if t.requirement_growth < 1.0 or t.reward_growth < 1.0:
        raise ValueError("project_tuning growth rates must be >= 1.0")

    features = [r.feature for r in b.unlock_rules]
    if len(set(features)) != len(features):
        raise ValueError("unlock rule features must be unique")

    achievement_ids = [a.id for a in b.achievements]
    if len(set(achievement_ids)) != len(achievement_ids):
        raise ValueError("achievement ids must be unique")
    for a in b.achievements:
        validate_achievement(a)

    return None


def archetype_from_mapping(d: Mapping[str, Any]) -> ProjectArchetype:
    return ProjectArchetype(
        name=str(d.get("name") or d.get("project_name") or "Project").strip(),
        difficulty=normalize_difficulty(d.get("difficulty")),
        reward_multiplier=_as_float(d.get("reward_multiplier", d.get("base_reward_multiplier", 1.0)), 1.0),
        min_stage=max(1, _as_int(d.get("min_stage", d.get("stage_requirement", 1)), 1)),
        description=str(d.get("description", "") or "").strip(),
        icon=str(d.get("icon", "") or ""),
    )
