"""engine.logging

Small helpers for storing session logs.

A session log is JSON-serializable so it can be exported/imported later.
EventRecorder taps the bus and keeps every published signal in order.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any, Dict, List, Optional

from core.events import EventBus, Signals, SubscriptionGroup
from core.state import PlayerState, state_to_dict

ALL_SIGNALS = tuple(v for k, v in vars(Signals).items() if k.isupper())


def _jsonable(x: Any) -> Any:
    if hasattr(x, "to_dict"):
        return x.to_dict()
    if is_dataclass(x) and not isinstance(x, type):
        return asdict(x)
    if isinstance(x, (list, tuple)):
        return [_jsonable(v) for v in x]
    if isinstance(x, dict):
        return {str(k): _jsonable(v) for k, v in x.items()}
    if x is None or isinstance(x, (bool, int, float, str)):
        return x
    return str(x)


@dataclass
class EventRecorder:
    bus: EventBus
    signals: tuple = ALL_SIGNALS
    events: List[Dict[str, Any]] = field(default_factory=list)
    _subs: Optional[SubscriptionGroup] = None

    def start(self) -> "EventRecorder":
        self._subs = SubscriptionGroup(self.bus)
        for sig in self.signals:
            self._subs.on(sig, self._recorder(sig))
        return self

    def _recorder(self, signal: str):
        def record(*args: Any) -> None:
            self.events.append({"seq": len(self.events), "signal": signal, "args": _jsonable(list(args))})

        return record

    def count(self, signal: str) -> int:
        return sum(1 for e in self.events if e["signal"] == signal)

    def close(self) -> None:
        if self._subs is not None:
            self._subs.close()
            self._subs = None


def make_session_export(
    *,
    seed: Optional[int],
    config: Dict[str, Any],
    initial_state: PlayerState,
    final_state: PlayerState,
    event_log: List[Dict[str, Any]],
) -> Dict[str, Any]:
    return {
        "version": 1,
        "seed": seed,
        "config": dict(config),
        "initial_state": state_to_dict(initial_state),
        "final_state": state_to_dict(final_state),
        "event_log": list(event_log),
    }


def dumps_session_export(obj: Dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2, sort_keys=True)
