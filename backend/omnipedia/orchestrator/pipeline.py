"""Pipeline driver: runs every stage for one item and records the outcome.

Stages run in a fixed order with the session status advanced before each
one. The final step runs the video (when requested and both images exist)
and the audio narration concurrently; each patches its own output and the
usage log as soon as it settles.

Any exception ends the run: it is classified once here, authentication
failures flag the session as needing a new key, everything else stores its
message. Outputs produced before the failure stay on the item.
"""

import asyncio
import logging
import time
from typing import Dict, Iterable, Optional

import httpx

from omnipedia.errors import FailureKind, classify_failure
from omnipedia.orchestrator.session import SessionStore
from omnipedia.orchestrator.state import GenerationStatus
from omnipedia.pipeline import (
    enrich_component_details,
    generate_assembled_image,
    generate_audio_narration,
    generate_infographic,
    generate_video,
    get_random_object,
    plan_object,
)
from omnipedia.schemas.generation import GenerationItem, TokenUsage
from omnipedia.schemas.plan import ComponentPart, ObjectPlan
from omnipedia.services.file_manager import FileManager
from omnipedia.services.genai_client import ApiCredentials

logger = logging.getLogger(__name__)

AUTH_ERROR_MESSAGE = "Invalid API Key. Please check your key and try again."
SURPRISE_ERROR_MESSAGE = "Failed to dream up an object. Please try again."
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"


class PipelineRunner:
    """Drives generation runs against a shared SessionStore."""

    def __init__(
        self,
        session: SessionStore,
        credentials: ApiCredentials,
        *,
        file_manager: Optional[FileManager] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.session = session
        self.credentials = credentials
        self.file_manager = file_manager or FileManager()
        self.http_client = http_client

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def start(
        self,
        prompt: str,
        animate: bool,
        initial_usage: Iterable[TokenUsage] = (),
        run_token: Optional[int] = None,
    ) -> Optional[tuple[GenerationItem, int]]:
        """Create the item and claim the session without running any stage.

        Returns:
            (item, run token), or None when no API key is configured.

        Raises:
            PipelineBusyError: If another run is in flight.
            StaleRunError: If ``run_token`` is no longer the active run.
        """
        if not self.credentials.is_configured:
            logger.warning("Generation requested without an API key")
            self._refuse_without_key(run_token)
            return None
        item = GenerationItem.create(prompt, animate, tuple(initial_usage))
        token = self.session.start_run(item, run_token)
        return item, token

    async def generate(
        self,
        prompt: str,
        animate: bool,
        initial_usage: Iterable[TokenUsage] = (),
        run_token: Optional[int] = None,
    ) -> Optional[GenerationItem]:
        """Run the full pipeline for ``prompt``.

        Args:
            prompt: User topic.
            animate: Whether to generate the transition video.
            initial_usage: Usage already spent on this item (surprise topic).
            run_token: Token of a surprise run to continue.

        Returns:
            The item as it stands when the run ends, or None when no key
            is configured.
        """
        started = self.start(prompt, animate, initial_usage, run_token)
        if started is None:
            return None
        item, token = started
        return await self.execute(item, token)

    async def surprise(self, animate: bool, run_token: Optional[int] = None) -> Optional[GenerationItem]:
        """Pick a random topic, then run the pipeline for it.

        A failed topic lookup returns the session to IDLE instead of FAILED.
        """
        if not self.credentials.is_configured:
            logger.warning("Surprise requested without an API key")
            self._refuse_without_key(run_token)
            return None
        if run_token is not None and not self.session.is_active(run_token):
            logger.info(f"Surprise run {run_token} was abandoned before it started")
            return None
        token = run_token if run_token is not None else self.session.begin_random()

        try:
            topic = await get_random_object(self.credentials)
        except Exception as e:
            logger.error(f"Random topic lookup failed: {type(e).__name__}: {e}")
            kind = classify_failure(e)
            message = AUTH_ERROR_MESSAGE if kind is FailureKind.AUTH else SURPRISE_ERROR_MESSAGE
            self.session.fail(token, message, kind, status=GenerationStatus.IDLE)
            return None

        if not self.session.is_active(token):
            logger.info(f"Discarding random topic '{topic.data}': run {token} was abandoned")
            return None
        return await self.generate(topic.data, animate, initial_usage=topic.usage, run_token=token)

    async def execute(self, item: GenerationItem, token: int) -> Optional[GenerationItem]:
        """Run every stage for an item created by start()."""
        step_log: Dict[str, float] = {}
        pipeline_start = time.monotonic()
        logger.info(f"Starting pipeline for item {item.id}: '{item.prompt}' (animate={item.has_video})")

        try:
            await self._run_stages(item, token, step_log)
            total = time.monotonic() - pipeline_start
            logger.info(f"Pipeline completed for item {item.id} in {total:.2f}s: {step_log}")
        except Exception as e:
            current = self.session.status.value if self.session.is_active(token) else "stale"
            logger.error(
                f"Pipeline failed for item {item.id} at {current}: {type(e).__name__}: {e}",
                exc_info=True,
            )
            kind = classify_failure(e)
            if kind is FailureKind.AUTH:
                message = AUTH_ERROR_MESSAGE
            else:
                message = str(e) or UNKNOWN_ERROR_MESSAGE
            self.session.fail(token, message, kind)

        final = self.session.get_item(item.id)
        if final is None:
            # History was cleared mid-run; drop media the run wrote afterwards
            self.file_manager.delete_item_assets(item.id)
        return final

    def _refuse_without_key(self, run_token: Optional[int]) -> None:
        """Raise the credential prompt, releasing a surprise run that holds the session."""
        if run_token is None:
            self.session.require_credentials()
        else:
            # Key was cleared after the surprise run claimed the session
            self.session.fail(run_token, AUTH_ERROR_MESSAGE, FailureKind.AUTH, status=GenerationStatus.IDLE)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    def _record_usage(self, item_id: str, usage: Iterable[TokenUsage], **changes) -> None:
        current = self.session.get_item(item_id)
        if current is None:
            return
        self.session.patch_item(item_id, usage=(*current.usage, *usage), **changes)

    async def _run_stages(self, item: GenerationItem, token: int, step_log: Dict[str, float]) -> None:
        topic = item.prompt

        step_start = time.monotonic()
        plan_result = await plan_object(self.credentials, topic)
        plan = plan_result.data
        placeholders = [ComponentPart.placeholder(name) for name in plan.component_list]
        self._record_usage(item.id, plan_result.usage, plan=plan, components=placeholders)
        step_log["plan"] = time.monotonic() - step_start

        self.session.set_status(token, GenerationStatus.GENERATING_INFOGRAPHIC)
        step_start = time.monotonic()
        infographic = await generate_infographic(self.credentials, topic, plan)
        self._record_usage(item.id, infographic.usage, infographic_url=infographic.data)
        step_log["infographic"] = time.monotonic() - step_start

        self.session.set_status(token, GenerationStatus.GENERATING_ASSEMBLY)
        step_start = time.monotonic()
        assembled = await generate_assembled_image(self.credentials, topic, plan, infographic.data)
        self._record_usage(item.id, assembled.usage, assembled_url=assembled.data)
        step_log["assembly"] = time.monotonic() - step_start

        self.session.set_status(token, GenerationStatus.ENRICHING)
        step_start = time.monotonic()
        enriched = await enrich_component_details(self.credentials, topic, plan.component_list)
        self._record_usage(item.id, enriched.usage, components=enriched.data)
        step_log["enrichment"] = time.monotonic() - step_start

        self.session.set_status(token, GenerationStatus.ANIMATING)
        step_start = time.monotonic()
        final_steps = [self._narrate(item.id, topic, plan)]
        if item.has_video and assembled.data and infographic.data:
            final_steps.append(self._animate(item.id, topic, plan, assembled.data, infographic.data))
        await asyncio.gather(*final_steps)
        step_log["media"] = time.monotonic() - step_start

        self.session.set_status(token, GenerationStatus.COMPLETED)

    async def _animate(
        self, item_id: str, topic: str, plan: ObjectPlan, assembled_url: str, infographic_url: str,
    ) -> None:
        video = await generate_video(
            self.credentials,
            topic,
            plan,
            assembled_url,
            infographic_url,
            item_id=item_id,
            file_manager=self.file_manager,
            http_client=self.http_client,
        )
        self._record_usage(item_id, video.usage, video_url=video.data)

    async def _narrate(self, item_id: str, topic: str, plan: ObjectPlan) -> None:
        narration = await generate_audio_narration(
            self.credentials, topic, plan, item_id=item_id, file_manager=self.file_manager,
        )
        self._record_usage(
            item_id,
            narration.usage,
            audio_url=narration.data.url,
            narration_script=narration.data.script,
        )
