"""Pydantic schemas for stage outputs and pipeline records."""

from omnipedia.schemas.generation import (
    GenerationItem,
    NarrationResult,
    StageResult,
    TokenUsage,
    UsageTotals,
)
from omnipedia.schemas.plan import (
    AudioVibe,
    ComponentBatch,
    ComponentPart,
    DomainType,
    ObjectPlan,
    SectionTitles,
)

__all__ = [
    "AudioVibe",
    "ComponentBatch",
    "ComponentPart",
    "DomainType",
    "GenerationItem",
    "NarrationResult",
    "ObjectPlan",
    "SectionTitles",
    "StageResult",
    "TokenUsage",
    "UsageTotals",
]
