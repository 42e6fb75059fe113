"""Pydantic schemas for the planning and enrichment stages.

ObjectPlan doubles as the response_schema for Gemini structured output, so
field descriptions are part of the prompt contract. ComponentPart is parsed
from free-form grounded output and therefore accepts camelCase keys too.
"""

from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

PENDING_DESCRIPTION = "Pending analysis..."
PENDING_COMPOSITION = "Analyzing..."


def _coerce_to_str(v: Any) -> str:
    """Coerce list/non-str values to a comma-separated string.

    Models occasionally return arrays for fields declared as string.
    """
    if isinstance(v, list):
        return ", ".join(str(item) for item in v)
    if v is None:
        return ""
    return v


CoercedStr = Annotated[str, BeforeValidator(_coerce_to_str)]


class DomainType(str, Enum):
    """Broad classification of the topic, drives the visual metaphor."""

    PHYSICAL = "PHYSICAL"
    SOFTWARE = "SOFTWARE"
    CONCEPTUAL = "CONCEPTUAL"
    BIOLOGICAL = "BIOLOGICAL"
    OTHER = "OTHER"


class SectionTitles(BaseModel):
    """Topic-specific headings for the four article sections."""

    model_config = ConfigDict(frozen=True)

    origin: str = Field(description="History, Inception, or Root Cause heading")
    anatomy: str = Field(description="Structure, Components, Modules, or Stages heading")
    article: str = Field(description="How it works, The Mechanics, The Code, or The Philosophy heading")
    trivia: str = Field(description="'Did You Know?', 'Edge Cases', or 'Fun Facts' heading")


class AudioVibe(BaseModel):
    """Narrator persona for the audio stage."""

    model_config = ConfigDict(frozen=True)

    voice_name: str = Field(description="One of: Puck, Charon, Kore, Fenrir, Zephyr")
    tone_description: CoercedStr


class ObjectPlan(BaseModel):
    """Structured content plan produced by the planning stage."""

    model_config = ConfigDict(frozen=True)

    display_title: str
    category: str
    domain_type: DomainType = Field(description="Classify the subject.")
    visual_metaphor: str = Field(
        description="The style of diagram (e.g., 'Exploded View', 'System Architecture', "
        "'Flowchart', 'Mind Map')."
    )
    section_titles: SectionTitles
    origin_story: str = Field(description="Short overview text only.")
    detailed_article: str = Field(description="Long form markdown text.")
    trivia: list[str] = Field(min_length=5, max_length=5, description="Exactly 5 surprising facts.")
    visual_style_prompt: CoercedStr
    component_list: list[str] = Field(description="The 6-8 key components, in display order.")
    audio_vibe: AudioVibe


class ComponentPart(BaseModel):
    """One planned component, placeholder until the enrichment stage replaces it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    name: str
    short_description: CoercedStr = ""
    detailed_content: Optional[str] = None
    composition: CoercedStr = ""
    sources: list[str] = Field(default_factory=list)

    @classmethod
    def placeholder(cls, name: str) -> "ComponentPart":
        """Build the entry shown between planning and enrichment."""
        return cls(
            name=name,
            short_description=PENDING_DESCRIPTION,
            composition=PENDING_COMPOSITION,
            detailed_content="",
        )


class ComponentBatch(BaseModel):
    """Top-level JSON object returned by one enrichment call."""

    components: list[ComponentPart]
