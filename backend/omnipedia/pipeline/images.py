"""Infographic and assembled-image generation.

The infographic is generated from text alone. The assembled image is
image-conditioned: the infographic data URL is decoded (MIME header
stripped) and submitted as an inline part, and the result is re-encoded
as a data URL.
"""

import logging
from typing import Any, Optional

from google.genai import types

from omnipedia.config import settings
from omnipedia.errors import MissingPayloadError
from omnipedia.pipeline.prompts import assembled_prompt, infographic_prompt
from omnipedia.schemas.generation import StageResult
from omnipedia.schemas.plan import ObjectPlan
from omnipedia.services.audio import strip_data_url, to_data_url
from omnipedia.services.genai_client import ApiCredentials
from omnipedia.services.pricing import asset_usage
from omnipedia.services.retry import call_with_policy

logger = logging.getLogger(__name__)


def first_inline_data(response: Any) -> Optional[types.Blob]:
    """Return the first inline binary part of the first candidate, if any."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates or candidates[0].content is None:
        return None
    for part in candidates[0].content.parts or []:
        if part.inline_data and part.inline_data.data:
            return part.inline_data
    return None


def _image_config() -> types.GenerateContentConfig:
    return types.GenerateContentConfig(
        response_modalities=["IMAGE"],
        image_config=types.ImageConfig(
            aspect_ratio=settings.pipeline.image_aspect_ratio,
            image_size=settings.pipeline.image_size,
        ),
    )


async def _generate_image(
    credentials: ApiCredentials, contents: Any, prompt: str, context: str,
) -> StageResult[str]:
    model = settings.models.image

    async def _call() -> StageResult[str]:
        client = credentials.client()
        response = await client.aio.models.generate_content(
            model=model,
            contents=contents,
            config=_image_config(),
        )
        blob = first_inline_data(response)
        if blob is None:
            raise MissingPayloadError(f"Failed to generate {context.lower()}: no image in response")
        url = to_data_url(blob.data, blob.mime_type or "image/png")
        # Image calls report no usable token counts; approximate from prompt size
        return StageResult(data=url, usage=[asset_usage(model, len(prompt) // 4)])

    return await call_with_policy(_call, settings.retry.image, context)


async def generate_infographic(
    credentials: ApiCredentials, topic: str, plan: ObjectPlan,
) -> StageResult[str]:
    """Generate the exploded-view / diagram infographic as a data URL."""
    prompt = infographic_prompt(topic, plan)
    result = await _generate_image(credentials, prompt, prompt, "Infographic")
    logger.info("Infographic generated for '%s'", topic)
    return result


async def generate_assembled_image(
    credentials: ApiCredentials, topic: str, plan: ObjectPlan, infographic_url: str,
) -> StageResult[str]:
    """Generate the assembled/complete-state image conditioned on the infographic."""
    prompt = assembled_prompt(topic, plan)
    mime_type, image_bytes = strip_data_url(infographic_url)
    contents = [
        types.Part.from_text(text=prompt),
        types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
    ]
    result = await _generate_image(credentials, contents, prompt, "Assembled Image")
    logger.info("Assembled image generated for '%s'", topic)
    return result
