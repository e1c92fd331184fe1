"""Lifecycle of a device code, as a table of allowed transitions.

The stored ``Status`` column only holds PENDING, APPROVED and DENIED.
EXCHANGED and EXPIRED are derived: an exchanged code is deleted and an
expired one has its ``ExpiresAt`` in the past. The table still names
them so that every step the flow takes can be checked against it.
"""

from __future__ import annotations

from enum import StrEnum
from typing import ClassVar, Generic, TypeVar, cast

from oauth21.core.models import DeviceCodeState

S = TypeVar("S", bound=StrEnum)


class StateMachine(Generic[S]):
    """Subclasses declare ``states`` and the ``transitions`` out of each of them.

    The table is checked when the subclass is created: every state needs
    an entry (possibly empty) and every target must be one of ``states``.
    """

    states: ClassVar[type[StrEnum]]
    transitions: ClassVar[dict[StrEnum, list[StrEnum]]]

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        if "states" not in vars(cls) or "transitions" not in vars(cls):
            return

        if missing := [str(s) for s in cls.states if s not in cls.transitions]:
            raise TypeError(f"{cls.__name__}: {missing} missing from transitions")
        for source, targets in cls.transitions.items():
            if unknown := [str(t) for t in targets if t not in cls.states]:
                raise TypeError(
                    f"{cls.__name__}: {unknown} reached from {source!s} "
                    "are not valid states"
                )

    @classmethod
    def get_valid_transitions(cls, current: S) -> list[S]:
        return cast(list[S], list(cls.transitions.get(current, [])))

    @classmethod
    def can_transition(cls, current: S, proposed: S) -> bool:
        return proposed in cls.get_valid_transitions(current)

    @classmethod
    def validate_transition(cls, current: S, proposed: S) -> None:
        """:raises: ValueError if ``proposed`` cannot follow ``current``"""
        if not cls.can_transition(current, proposed):
            allowed = [str(s) for s in cls.get_valid_transitions(current)]
            raise ValueError(
                f"Cannot transition from {current!s} to {proposed!s}, "
                f"allowed: {allowed}"
            )


class DeviceCodeStateMachine(StateMachine[DeviceCodeState]):
    states = DeviceCodeState
    transitions = {
        DeviceCodeState.PENDING: [
            DeviceCodeState.APPROVED,
            DeviceCodeState.DENIED,
            DeviceCodeState.EXPIRED,
        ],
        DeviceCodeState.APPROVED: [
            DeviceCodeState.EXCHANGED,
            DeviceCodeState.EXPIRED,
        ],
        # A denied code is deleted by the next poll
        DeviceCodeState.DENIED: [DeviceCodeState.EXPIRED],
        DeviceCodeState.EXCHANGED: [],
        DeviceCodeState.EXPIRED: [],
    }
