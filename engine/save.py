"""engine.save

JSON save file for PlayerState.

Layout on disk:
  <path>          current save
  <path>.bak      previous save (copied before every write)

Loading never raises: an unreadable main file falls back to the backup,
then to a fresh start state. Writing logs and re-raises OSError.
Version 1 saves (single click_power / auto_income values) are migrated
to version 2 on load.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from balance.schemas import LevelCurve, normalize_key
from core.events import EventBus, Signals
from core.leveling import level_from_experience
from core.state import SAVE_VERSION, PlayerState, default_start_state, state_from_mapping, state_to_dict

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".bak"

# v1 -> v2 conversion ratios for players who already had money unlocked
V1_MONEY_CLICK_RATIO = 0.5
V1_AUTO_MONEY_RATIO = 0.3
V1_MONEY_LEVEL = 10


def migrate_save_data(data: Mapping[str, Any], level_curve: Optional[LevelCurve] = None) -> Dict[str, Any]:
    """Bring an older save blob up to SAVE_VERSION.

    Counters that did not exist before (projects, upgrades purchased, auto
    income) restart at zero. Level and unlocked features are rebuilt from
    experience and stage.
    """
    curve = level_curve or LevelCurve()
    old = {normalize_key(k): v for k, v in dict(data).items()}
    version = int(old.get("save_version", 1) or 1)
    logger.info("migrating save data from version %d to %d", version, SAVE_VERSION)

    experience = max(0, int(old.get("experience", 0) or 0))
    stage = max(1, int(old.get("current_stage", 1) or 1))
    level = level_from_experience(experience, curve.base_experience, curve.growth)

    new: Dict[str, Any] = {
        "save_version": SAVE_VERSION,
        "money": old.get("money", 0),
        "experience": experience,
        "current_stage": stage,
        "player_level": level,
        "first_play_time": old.get("first_play_time"),
        "last_save_time": old.get("last_save_time"),
        "total_play_time": old.get("total_play_time", 0.0),
        "save_count": old.get("save_count", 0),
        "total_clicks": old.get("total_clicks", 0),
        "total_money_earned": old.get("total_money_earned", 0),
        "total_experience_earned": old.get("total_experience_earned", 0),
        "upgrade_levels": dict(old.get("upgrade_levels") or {}),
        "base_money_per_click": 0.0,
        "base_exp_per_click": 1.0,
        "base_auto_money": 0.0,
        "base_auto_exp": 0.0,
    }

    features = []
    if level >= V1_MONEY_LEVEL:
        features.append("money")
    if stage >= 2:
        features.append("project_system")
    new["unlocked_features"] = features

    if version == 1:
        click_power = old.get("click_power")
        if click_power is not None:
            click_power = float(click_power)
            new["base_exp_per_click"] = max(1.0, click_power)
            if level >= V1_MONEY_LEVEL:
                new["base_money_per_click"] = click_power * V1_MONEY_CLICK_RATIO
        auto_income = old.get("auto_income")
        if auto_income is not None:
            auto_income = float(auto_income)
            new["base_auto_exp"] = auto_income
            if level >= V1_MONEY_LEVEL:
                new["base_auto_money"] = auto_income * V1_AUTO_MONEY_RATIO
    else:
        logger.warning("unknown save version %d, using defaults for rates", version)

    for src, dst in (
        ("base_money_per_click", "money_per_click"),
        ("base_exp_per_click", "exp_per_click"),
        ("base_auto_money", "auto_money"),
        ("base_auto_exp", "auto_exp"),
    ):
        new[dst] = new[src]
    return new


def state_from_save_data(data: Mapping[str, Any], level_curve: Optional[LevelCurve] = None) -> PlayerState:
    """PlayerState from a save blob of any version.

    Raises ValueError, TypeError or OverflowError for blobs it cannot read.
    """
    if int(data.get("save_version", data.get("saveVersion", 1)) or 1) != SAVE_VERSION:
        data = migrate_save_data(data, level_curve)
    return state_from_mapping(data)


class SaveStore:
    def __init__(
        self,
        path: Union[str, Path],
        *,
        bus: Optional[EventBus] = None,
        level_curve: Optional[LevelCurve] = None,
    ) -> None:
        self.path = Path(path)
        self.backup_path = self.path.with_name(self.path.name + BACKUP_SUFFIX)
        self.bus = bus
        self.level_curve = level_curve
        self._dirty = False
        self._play_mark: Optional[datetime] = None

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self) -> None:
        self._dirty = True

    def exists(self) -> bool:
        return self.path.exists() or self.backup_path.exists()

    # -------------------------
    # Load
    # -------------------------

    def _read(self, path: Path) -> PlayerState:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"save file {path} does not hold a JSON object")
        return state_from_save_data(data, self.level_curve)

    def load(self, now: Optional[datetime] = None) -> PlayerState:
        now = now or datetime.now()
        state: Optional[PlayerState] = None

        if self.path.exists():
            try:
                state = self._read(self.path)
            except (OSError, ValueError, TypeError, OverflowError) as e:
                logger.warning("failed to load %s: %s", self.path, e)

        if state is None and self.backup_path.exists():
            logger.warning("attempting to load from backup %s", self.backup_path)
            try:
                state = self._read(self.backup_path)
            except (OSError, ValueError, TypeError, OverflowError) as e:
                logger.warning("failed to load backup %s: %s", self.backup_path, e)

        if state is None:
            logger.info("no usable save at %s, starting a new game", self.path)
            state = default_start_state(now)
        elif state.first_play_time is None:
            state.first_play_time = now

        self._play_mark = now
        self._dirty = False
        if self.bus is not None:
            self.bus.publish(Signals.GAME_LOADED)
        return state

    # -------------------------
    # Save
    # -------------------------

    def save(self, state: PlayerState, now: Optional[datetime] = None) -> None:
        now = now or datetime.now()
        if self._play_mark is not None:
            state.total_play_time += max(0.0, (now - self._play_mark).total_seconds())
        self._play_mark = now
        state.last_save_time = now
        state.save_count += 1
        state.save_version = SAVE_VERSION

        payload = json.dumps(state_to_dict(state), ensure_ascii=False, indent=2, sort_keys=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.path.exists():
                shutil.copyfile(self.path, self.backup_path)
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError:
            logger.exception("failed to save game to %s", self.path)
            raise

        self._dirty = False
        logger.info("game saved to %s (save #%d)", self.path, state.save_count)
        if self.bus is not None:
            self.bus.publish(Signals.GAME_SAVED)

    def save_if_dirty(self, state: PlayerState, now: Optional[datetime] = None) -> bool:
        if not self._dirty:
            return False
        self.save(state, now)
        return True

    def delete(self, now: Optional[datetime] = None) -> PlayerState:
        """Remove both files and return a fresh start state."""
        for p in (self.path, self.backup_path):
            if p.exists():
                p.unlink()
        logger.info("save data deleted: %s", self.path)
        self._dirty = False
        self._play_mark = now or datetime.now()
        return default_start_state(self._play_mark)
