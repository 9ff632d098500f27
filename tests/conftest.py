from __future__ import annotations

import pytest

from balance.defaults import default_balance
from core.events import EventBus
from core.rng import rng_from
from core.state import PlayerState
from engine.config import EngineConfig
from engine.logging import EventRecorder
from engine.progression import ProgressionModel
from engine.projects import ProjectSystem


@pytest.fixture
def balance():
    return default_balance()


@pytest.fixture
def config():
    # no crits or achievement rewards unless a test asks for them
    return EngineConfig(base_seed=7, critical_chance=0.0, autosave_interval=0, achievements_enabled=False)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def state():
    return PlayerState()


@pytest.fixture
def recorder(bus):
    rec = EventRecorder(bus).start()
    yield rec
    rec.close()


@pytest.fixture
def progression(state, bus, balance, config):
    return ProgressionModel(state=state, bus=bus, balance=balance, config=config, rng=rng_from("clicks", base_seed=7))


@pytest.fixture
def projects(state, bus, balance, progression):
    system = ProjectSystem(
        state=state,
        bus=bus,
        balance=balance,
        progression=progression,
        rng=rng_from("projects", base_seed=7),
    )
    system.start()
    yield system
    system.close()
