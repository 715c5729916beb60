"""
Small table-driven state machine shared by the invoice and quote lifecycles.

Transitions only ever set the status and, optionally, a timestamp column on the
entity. Persisting the change is the caller's job, so one transition maps to a
single UPDATE.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Type

from app.common.errors import IllegalTransition


@dataclass(frozen=True)
class Transition:
    action: str
    sources: FrozenSet[Enum]
    target: Enum
    stamp: Optional[str] = None  # attribute set to the transition time


@dataclass
class Lifecycle:
    entity_type: str
    status_enum: Type[Enum]
    transitions: Iterable[Transition]
    initial: Enum
    _by_action: Dict[str, Transition] = field(init=False, repr=False)

    def __post_init__(self):
        self.transitions = tuple(self.transitions)
        self._by_action = {t.action: t for t in self.transitions}

    @property
    def terminal_states(self) -> FrozenSet[Enum]:
        exits = set()
        for t in self.transitions:
            exits.update(t.sources)
        return frozenset(s for s in self.status_enum if s not in exits and s != self.initial)

    def status_of(self, entity) -> Enum:
        return self.status_enum(entity.status)

    def can_apply(self, entity, action: str) -> bool:
        transition = self._by_action.get(action)
        return transition is not None and self.status_of(entity) in transition.sources

    def apply(self, entity, action: str, now: datetime):
        """Move ``entity`` along ``action`` or raise ``IllegalTransition``."""
        current = self.status_of(entity)
        transition = self._by_action.get(action)
        if transition is None or current not in transition.sources:
            raise IllegalTransition(self.entity_type, current.value, action)
        entity.status = transition.target.value
        if transition.stamp:
            setattr(entity, transition.stamp, now)
        return entity
