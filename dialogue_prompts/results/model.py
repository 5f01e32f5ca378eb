"""
Result effects attached to dialogue options
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

RUN_ALWAYS = "always"
RUN_ON_PASS = "pass"
RUN_ON_FAIL = "fail"

# Effect kinds that close the dialogue as soon as they run
TERMINATING_KINDS = {"ends", "startcombat", "startfight"}

_FIELD_KEYS = {"type", "key", "value", "on", "runOn", "dc", "storeAs", "data"}


@dataclass
class ResultEffect:
    """One side effect, executed in list order when its option is chosen"""

    kind: str
    key: Optional[str] = None
    value: Any = None
    on: Optional[str] = None
    run_on: Optional[str] = None
    dc: Optional[int] = None
    store_as: Optional[str] = None
    data: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def normalized_kind(self) -> str:
        return (self.kind or "").lower()

    @property
    def gate(self) -> str:
        return (self.run_on or RUN_ALWAYS).lower()

    @property
    def is_goto(self) -> bool:
        return self.normalized_kind == "goto"

    @property
    def terminates(self) -> bool:
        return self.normalized_kind in TERMINATING_KINDS

    @classmethod
    def from_dict(cls, data: Any) -> "ResultEffect":
        if isinstance(data, ResultEffect):
            return data
        if not isinstance(data, dict):
            return cls(kind="")
        dc = data.get("dc")
        try:
            dc = int(dc) if dc not in (None, "") else None
        except (TypeError, ValueError):
            dc = None
        return cls(
            kind=str(data.get("type") or ""),
            key=None if data.get("key") is None else str(data.get("key")),
            value=data.get("value"),
            on=data.get("on") or None,
            run_on=data.get("runOn") or None,
            dc=dc,
            store_as=data.get("storeAs") or None,
            data=data.get("data"),
            extra={k: v for k, v in data.items() if k not in _FIELD_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.kind}
        if self.key is not None:
            out["key"] = self.key
        if self.value is not None:
            out["value"] = self.value
        if self.on is not None:
            out["on"] = self.on
        if self.run_on is not None:
            out["runOn"] = self.run_on
        if self.dc is not None:
            out["dc"] = self.dc
        if self.store_as is not None:
            out["storeAs"] = self.store_as
        if self.data is not None:
            out["data"] = self.data
        out.update(self.extra)
        return out


def parse_results(data: Any) -> List[ResultEffect]:
    """Parse a stored result list; anything that is not a list becomes empty"""
    if not isinstance(data, list):
        return []
    return [ResultEffect.from_dict(r) for r in data]


def should_run(effect: ResultEffect, roll_passed: Optional[bool]) -> bool:
    """
    Gate an effect on the option-level roll.

    ``always`` runs regardless. ``pass`` and ``fail`` need a roll to have
    happened with the matching outcome.
    """
    gate = effect.gate
    if gate == RUN_ON_PASS:
        return roll_passed is True
    if gate == RUN_ON_FAIL:
        return roll_passed is False
    return True
