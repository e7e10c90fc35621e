"""
Lifecycle State Machine base

Each entity machine declares a TRANSITIONS table keyed by every member of
its status enum. Tables are checked when the subclass is defined, so a new
status added to an enum without a TRANSITIONS entry fails at import time.
"""
from enum import Enum
from typing import Dict, List, Optional, Tuple, Type


class LifecycleStateMachine:
    """Table-driven transition rules for one entity type."""

    ENTITY_NAME: str = ""
    STATUS_ENUM: Optional[Type[Enum]] = None

    # Valid state transitions: {current_state: [allowed_next_states]}
    TRANSITIONS: Dict[Enum, List[Enum]] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.STATUS_ENUM is None:
            raise TypeError(f"{cls.__name__} must declare STATUS_ENUM")

        missing = [s.value for s in cls.STATUS_ENUM if s not in cls.TRANSITIONS]
        if missing:
            raise TypeError(
                f"{cls.__name__}.TRANSITIONS has no entry for: {', '.join(missing)}"
            )

        for source, targets in cls.TRANSITIONS.items():
            foreign = [t for t in targets if not isinstance(t, cls.STATUS_ENUM)]
            if not isinstance(source, cls.STATUS_ENUM) or foreign:
                raise TypeError(f"{cls.__name__}.TRANSITIONS mixes in non-{cls.STATUS_ENUM.__name__} states")

    @classmethod
    def allowed_targets(cls, current: Enum) -> List[Enum]:
        return list(cls.TRANSITIONS[current])

    @classmethod
    def is_terminal(cls, current: Enum) -> bool:
        """A state with no outgoing transitions."""
        return not cls.TRANSITIONS[current]

    @classmethod
    def can_transition(cls, current: Enum, target: Enum) -> Tuple[bool, str]:
        """
        Check a transition against the table.

        Returns:
            Tuple of (allowed, message)
        """
        if current == target:
            return False, f"{cls.ENTITY_NAME} is already {current.value}"

        if target not in cls.TRANSITIONS[current]:
            allowed = ", ".join(s.value for s in cls.TRANSITIONS[current]) or "none"
            return False, (
                f"Invalid {cls.ENTITY_NAME.lower()} transition: {current.value} -> {target.value}. "
                f"Allowed from {current.value}: {allowed}"
            )

        return True, "Transition allowed"
