"""State machine for the session's generation status.

Defines the ordered happy path, the full transition table, and the
transition function the driver and session store go through.
"""

from enum import Enum
from typing import Dict, FrozenSet

from omnipedia.errors import InvalidTransitionError


class GenerationStatus(str, Enum):
    """What the session is currently doing (at most one run in flight)."""

    IDLE = "IDLE"
    GENERATING_RANDOM = "GENERATING_RANDOM"
    PLANNING = "PLANNING"
    GENERATING_INFOGRAPHIC = "GENERATING_INFOGRAPHIC"
    GENERATING_ASSEMBLY = "GENERATING_ASSEMBLY"
    ENRICHING = "ENRICHING"
    ANIMATING = "ANIMATING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


S = GenerationStatus

# Happy-path transitions for active pipeline steps
STEP_TRANSITIONS: Dict[GenerationStatus, GenerationStatus] = {
    S.PLANNING: S.GENERATING_INFOGRAPHIC,
    S.GENERATING_INFOGRAPHIC: S.GENERATING_ASSEMBLY,
    S.GENERATING_ASSEMBLY: S.ENRICHING,
    S.ENRICHING: S.ANIMATING,
    S.ANIMATING: S.COMPLETED,
}

# States from which a new run may start
RESTING_STATES: FrozenSet[GenerationStatus] = frozenset({S.IDLE, S.COMPLETED, S.FAILED})

_START = frozenset({S.PLANNING, S.GENERATING_RANDOM, S.IDLE})

TRANSITIONS: Dict[GenerationStatus, FrozenSet[GenerationStatus]] = {
    S.IDLE: _START,
    S.COMPLETED: _START,
    S.FAILED: _START,
    # Random topic either feeds a run or falls back to idle on failure
    S.GENERATING_RANDOM: frozenset({S.PLANNING, S.IDLE}),
    **{
        step: frozenset({nxt, S.FAILED})
        for step, nxt in STEP_TRANSITIONS.items()
    },
}

# Progress position per status, FAILED has none
STEP_INDEX: Dict[GenerationStatus, int] = {
    S.IDLE: 0,
    S.GENERATING_RANDOM: 0,
    S.PLANNING: 1,
    S.GENERATING_INFOGRAPHIC: 2,
    S.GENERATING_ASSEMBLY: 3,
    S.ENRICHING: 4,
    S.ANIMATING: 5,
    S.COMPLETED: 6,
    S.FAILED: -1,
}


def can_transition(current: GenerationStatus, target: GenerationStatus) -> bool:
    """Check whether ``current -> target`` is a legal transition."""
    return target in TRANSITIONS[current]


def transition(current: GenerationStatus, target: GenerationStatus) -> GenerationStatus:
    """Validate and return the next status.

    Raises:
        InvalidTransitionError: If the transition is not in TRANSITIONS.
    """
    if not can_transition(current, target):
        raise InvalidTransitionError(f"Illegal status transition {current.value} -> {target.value}")
    return target


def is_processing(status: GenerationStatus) -> bool:
    """True while a run (or random-topic lookup) is in flight."""
    return status not in RESTING_STATES
