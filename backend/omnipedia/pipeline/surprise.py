"""Random topic suggestion for the "surprise me" flow."""

import logging
import random

from google.genai import types

from omnipedia.config import settings
from omnipedia.pipeline.prompts import surprise_prompt
from omnipedia.schemas.generation import StageResult
from omnipedia.services.genai_client import ApiCredentials
from omnipedia.services.pricing import usage_from_response
from omnipedia.services.retry import call_with_policy

logger = logging.getLogger(__name__)

FALLBACK_TOPIC = "Vintage Typewriter"


async def get_random_object(credentials: ApiCredentials) -> StageResult[str]:
    """Ask a fast model for one interesting topic.

    A random seed is embedded in the prompt so repeated calls diverge.
    An empty answer falls back to FALLBACK_TOPIC instead of failing.
    """
    model = settings.models.surprise
    prompt = surprise_prompt(random.randint(0, 999_999))

    async def _call() -> StageResult[str]:
        client = credentials.client()
        response = await client.aio.models.generate_content(
            model=model,
            contents=prompt,
            config=types.GenerateContentConfig(temperature=settings.pipeline.surprise_temperature),
        )
        name = (response.text or "").strip().strip('"') or FALLBACK_TOPIC
        return StageResult(data=name, usage=[usage_from_response(model, response)])

    result = await call_with_policy(_call, settings.retry.surprise, "Surprise Me")
    logger.info("Random topic: %s", result.data)
    return result
