"""Pipeline stage functions.

Each stage builds its prompt, calls the API through the retry wrapper,
validates the payload and returns a StageResult with one usage record per
network call.
"""

from omnipedia.pipeline.enrichment import BatchOutcome, EnrichmentResult, enrich_component_details
from omnipedia.pipeline.images import generate_assembled_image, generate_infographic
from omnipedia.pipeline.narration import generate_audio_narration
from omnipedia.pipeline.plan import plan_object
from omnipedia.pipeline.surprise import get_random_object
from omnipedia.pipeline.video_gen import generate_video

__all__ = [
    "BatchOutcome",
    "EnrichmentResult",
    "enrich_component_details",
    "generate_assembled_image",
    "generate_audio_narration",
    "generate_infographic",
    "generate_video",
    "get_random_object",
    "plan_object",
]
