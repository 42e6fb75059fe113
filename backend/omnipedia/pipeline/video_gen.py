"""Veo video generation between the assembled image and the infographic.

Submits a long-running job (start frame = assembled image, last frame =
infographic), polls it on a fixed interval, then fetches the generated
file through its signed URI and saves it as an MP4.

The whole submit/poll/download sequence is one retried unit: a failure at
any point resubmits the job.
"""

import asyncio
import logging
from typing import Optional

import httpx
from google.genai import types

from omnipedia.config import settings
from omnipedia.errors import MissingPayloadError
from omnipedia.pipeline.prompts import video_prompt
from omnipedia.schemas.generation import StageResult
from omnipedia.schemas.plan import ObjectPlan
from omnipedia.services.audio import strip_data_url
from omnipedia.services.file_manager import FileManager
from omnipedia.services.genai_client import ApiCredentials
from omnipedia.services.pricing import asset_usage
from omnipedia.services.retry import call_with_policy

logger = logging.getLogger(__name__)

# Nominal input units recorded for a video call
VIDEO_USAGE_UNITS = 100
DOWNLOAD_TIMEOUT = 120.0


async def _poll_until_done(client, operation):
    """Poll a video operation on a fixed interval until it reports done.

    Raises:
        TimeoutError: If the job is still running after video_poll_max polls.
    """
    poll_interval = settings.pipeline.video_poll_interval
    max_polls = settings.pipeline.video_poll_max

    for poll_attempt in range(max_polls):
        if operation.done:
            return operation
        await asyncio.sleep(poll_interval)
        operation = await client.aio.operations.get(operation)
        logger.debug("Video operation poll %d: done=%s", poll_attempt + 1, operation.done)

    if operation.done:
        return operation
    raise TimeoutError(f"Video operation did not complete after {max_polls * poll_interval} seconds")


async def _download(uri: str, api_key: str, http_client: Optional[httpx.AsyncClient]) -> bytes:
    """Fetch the generated video through its signed URI."""
    headers = {"x-goog-api-key": api_key}
    if http_client is not None:
        response = await http_client.get(uri, headers=headers, follow_redirects=True)
        response.raise_for_status()
        return response.content

    async with httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT) as client:
        response = await client.get(uri, headers=headers, follow_redirects=True)
        response.raise_for_status()
        return response.content


async def generate_video(
    credentials: ApiCredentials,
    topic: str,
    plan: ObjectPlan,
    assembled_url: str,
    infographic_url: str,
    *,
    item_id: str,
    file_manager: FileManager,
    http_client: Optional[httpx.AsyncClient] = None,
) -> StageResult[str]:
    """Animate the assembled object into its exploded infographic.

    Args:
        credentials: API credentials; the key also authorizes the download.
        topic: User topic.
        plan: Plan from the planning stage.
        assembled_url: Data URL used as the start frame.
        infographic_url: Data URL used as the last frame.
        item_id: Generation item that owns the saved file.
        file_manager: Where the MP4 is written.
        http_client: Optional shared httpx client for the download.

    Returns:
        StageResult with the saved video's file URI.

    Raises:
        MissingPayloadError: If the finished job carries no video.
        TimeoutError: If polling exceeds video_poll_max.
    """
    model = settings.models.video
    prompt = video_prompt(topic, plan)
    start_mime, start_bytes = strip_data_url(assembled_url)
    end_mime, end_bytes = strip_data_url(infographic_url)

    async def _call() -> bytes:
        client = credentials.client()
        operation = await client.aio.models.generate_videos(
            model=model,
            prompt=prompt,
            image=types.Image(image_bytes=start_bytes, mime_type=start_mime),
            config=types.GenerateVideosConfig(
                number_of_videos=1,
                resolution=settings.pipeline.video_resolution,
                aspect_ratio=settings.pipeline.image_aspect_ratio,
                last_frame=types.Image(image_bytes=end_bytes, mime_type=end_mime),
            ),
        )
        logger.info("Video job submitted: %s", getattr(operation, "name", "<unnamed>"))
        operation = await _poll_until_done(client, operation)

        if operation.error:
            raise RuntimeError(f"Video generation failed: {operation.error}")

        generated = (operation.response.generated_videos or []) if operation.response else []
        video = generated[0].video if generated else None
        if video is not None and video.video_bytes:
            return video.video_bytes
        if video is None or not video.uri:
            raise MissingPayloadError("Video generation failed: no video URI in response")
        return await _download(video.uri, credentials.api_key, http_client)

    video_bytes = await call_with_policy(_call, settings.retry.video, "Video Generation")
    path = file_manager.save_video(item_id, video_bytes)
    logger.info("Video saved for item %s (%d bytes)", item_id, len(video_bytes))
    return StageResult(data=path.as_uri(), usage=[asset_usage(model, VIDEO_USAGE_UNITS)])
