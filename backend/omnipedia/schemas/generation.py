"""Records exchanged between stages, the driver and the session store.

All records are immutable. A GenerationItem is only ever replaced by a
merged copy (``item.merged(...)``); the usage log grows by replacement.
"""

import time
from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from omnipedia.schemas.plan import ComponentPart, ObjectPlan

T = TypeVar("T")

_last_item_id = 0


def _next_item_id(now_ms: int) -> str:
    """Millisecond timestamp id, bumped to stay unique within a process."""
    global _last_item_id
    _last_item_id = max(now_ms, _last_item_id + 1)
    return str(_last_item_id)


class TokenUsage(BaseModel):
    """Size and estimated cost of one network call."""

    model_config = ConfigDict(frozen=True)

    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost_estimate: float = 0.0


class GenerationItem(BaseModel):
    """One user request and every stage output produced for it so far."""

    model_config = ConfigDict(frozen=True)

    id: str
    prompt: str
    timestamp: int
    has_video: bool

    plan: Optional[ObjectPlan] = None
    components: tuple[ComponentPart, ...] = ()
    narration_script: Optional[str] = None

    infographic_url: Optional[str] = None
    assembled_url: Optional[str] = None
    video_url: Optional[str] = None
    audio_url: Optional[str] = None

    usage: tuple[TokenUsage, ...] = ()

    @classmethod
    def create(
        cls, prompt: str, has_video: bool, usage: tuple[TokenUsage, ...] = ()
    ) -> "GenerationItem":
        """Create a fresh item whose id derives from the creation time."""
        now_ms = time.time_ns() // 1_000_000
        return cls(
            id=_next_item_id(now_ms), prompt=prompt, timestamp=now_ms, has_video=has_video, usage=usage,
        )

    def merged(self, **changes) -> "GenerationItem":
        """Return a copy with ``changes`` applied (whole-item merge patch)."""
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown GenerationItem fields: {sorted(unknown)}")
        if "components" in changes:
            changes["components"] = tuple(changes["components"])
        if "usage" in changes:
            changes["usage"] = tuple(changes["usage"])
        return self.model_copy(update=changes)

    @property
    def total_cost(self) -> float:
        return round(sum(u.cost_estimate for u in self.usage), 5)


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Normalized output of a stage: its artifact plus one usage record per call."""

    data: T
    usage: list[TokenUsage] = field(default_factory=list)


@dataclass(frozen=True)
class NarrationResult:
    """Playable narration asset and the script it was synthesized from."""

    url: str
    script: str


class UsageTotals(BaseModel):
    """Session-wide aggregate of every usage record in history."""

    model_config = ConfigDict(frozen=True)

    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = Field(default=0.0)

    @classmethod
    def from_items(cls, items) -> "UsageTotals":
        records = [u for item in items for u in item.usage]
        return cls(
            calls=len(records),
            input_tokens=sum(u.input_tokens for u in records),
            output_tokens=sum(u.output_tokens for u in records),
            cost=round(sum(u.cost_estimate for u in records), 5),
        )
