"""Planning stage: one structured-output call producing the ObjectPlan.

The plan drives every later stage (image prompts, component batches,
narration source text and voice), so it is requested with
response_schema=ObjectPlan and validated before anything else runs.
"""

import logging

from google.genai import types

from omnipedia.config import settings
from omnipedia.errors import MissingPayloadError
from omnipedia.pipeline.prompts import plan_prompt
from omnipedia.schemas.generation import StageResult
from omnipedia.schemas.plan import ObjectPlan
from omnipedia.services.genai_client import ApiCredentials
from omnipedia.services.pricing import usage_from_response
from omnipedia.services.retry import call_with_policy

logger = logging.getLogger(__name__)


async def plan_object(credentials: ApiCredentials, topic: str) -> StageResult[ObjectPlan]:
    """Generate the content plan for ``topic``.

    Args:
        credentials: API credentials used to build the client.
        topic: Free-text topic from the user.

    Returns:
        StageResult with the validated ObjectPlan and one usage record.

    Raises:
        MissingPayloadError: If the response carries no text.
        pydantic.ValidationError: If the text does not match the schema.
    """
    model = settings.models.planning
    prompt = plan_prompt(topic)

    async def _call() -> StageResult[ObjectPlan]:
        client = credentials.client()
        response = await client.aio.models.generate_content(
            model=model,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=ObjectPlan,
            ),
        )
        if not response.text:
            raise MissingPayloadError("Failed to plan object: empty response")
        plan = ObjectPlan.model_validate_json(response.text)
        return StageResult(data=plan, usage=[usage_from_response(model, response)])

    result = await call_with_policy(_call, settings.retry.plan, "Plan Object")
    logger.info(
        "Planned '%s' (%s, %d components)",
        result.data.display_title,
        result.data.domain_type.value,
        len(result.data.component_list),
    )
    return result
