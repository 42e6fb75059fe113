"""Batched, search-grounded component enrichment.

Component names are partitioned into fixed-size batches and every batch is
enriched concurrently (no concurrency limit). Each call returns grounding
citations; the deduplicated citations of a batch are attached to every
component parsed from that batch, so attribution is per batch rather than
per component.

A batch whose call keeps failing after retries fails the stage. A batch
whose text cannot be parsed does not: it yields a failed BatchOutcome, its
components are left out, and the remaining batches still merge.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from google.genai import types
from pydantic import ValidationError

from omnipedia.config import settings
from omnipedia.errors import MissingPayloadError
from omnipedia.pipeline.prompts import deep_dive_prompt
from omnipedia.schemas.generation import StageResult, TokenUsage
from omnipedia.schemas.plan import ComponentBatch, ComponentPart
from omnipedia.services.genai_client import ApiCredentials
from omnipedia.services.pricing import usage_from_response
from omnipedia.services.retry import call_with_policy

logger = logging.getLogger(__name__)

# Citation hosts that point back at the provider rather than a real source
IGNORED_SOURCE_MARKERS = ("google.com", "vertexaisearch", "googleusercontent")

_FENCED_JSON_RE = re.compile(r"```(?:json)?[ \t]*\n(.*?)\n[ \t]*```", re.DOTALL)


@dataclass(frozen=True)
class BatchOutcome:
    """Result of enriching one batch: components on success, a reason on failure."""

    index: int
    names: tuple[str, ...]
    components: tuple[ComponentPart, ...] = ()
    sources: tuple[str, ...] = ()
    usage: Optional[TokenUsage] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class EnrichmentResult(StageResult[list[ComponentPart]]):
    """Merged components plus the per-batch outcomes they came from."""

    outcomes: tuple[BatchOutcome, ...] = ()

    @property
    def failed_batches(self) -> list[BatchOutcome]:
        return [o for o in self.outcomes if not o.ok]


def make_batches(names: list[str], size: int) -> list[list[str]]:
    """Partition ``names`` into ordered batches of at most ``size`` items."""
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [names[i:i + size] for i in range(0, len(names), size)]


def extract_sources(response: Any) -> list[str]:
    """Collect grounding citation URIs, dropping provider-internal links.

    Duplicates are removed while keeping first-seen order.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []

    sources: dict[str, None] = {}
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None)
        if not uri:
            continue
        if any(marker in uri for marker in IGNORED_SOURCE_MARKERS):
            continue
        sources.setdefault(uri, None)
    return list(sources)


def parse_components(text: str) -> list[ComponentPart]:
    """Parse the components array out of model text.

    Grounded calls can not use response_schema, so the JSON may arrive
    wrapped in a Markdown code fence.

    Raises:
        ValueError: If no valid components object can be parsed.
    """
    match = _FENCED_JSON_RE.search(text)
    payload = match.group(1) if match else text.strip()
    try:
        batch = ComponentBatch.model_validate(json.loads(payload))
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        raise ValueError(f"Unparsable component JSON: {e}") from e
    return batch.components


async def enrich_batch(
    credentials: ApiCredentials, topic: str, names: list[str], index: int = 0,
) -> BatchOutcome:
    """Enrich one batch with a single search-grounded call."""
    model = settings.models.authoring
    prompt = deep_dive_prompt(topic, names)

    async def _call():
        client = credentials.client()
        response = await client.aio.models.generate_content(
            model=model,
            contents=prompt,
            config=types.GenerateContentConfig(
                tools=[types.Tool(google_search=types.GoogleSearch())],
            ),
        )
        if not response.text:
            raise MissingPayloadError("Failed to enrich details: empty response")
        return response

    response = await call_with_policy(_call, settings.retry.enrich, f"Enrich Batch {index + 1}")
    usage = usage_from_response(model, response)
    sources = tuple(extract_sources(response))

    try:
        parsed = parse_components(response.text)
    except ValueError as e:
        logger.error(
            "Batch %d (%s): failed to parse enrichment JSON: %s",
            index + 1, ", ".join(names), e,
        )
        return BatchOutcome(index=index, names=tuple(names), sources=sources, usage=usage, error=str(e))

    components = tuple(c.model_copy(update={"sources": list(sources)}) for c in parsed)
    logger.info(
        "Batch %d: enriched %d component(s) with %d source(s)",
        index + 1, len(components), len(sources),
    )
    return BatchOutcome(
        index=index, names=tuple(names), components=components, sources=sources, usage=usage,
    )


async def enrich_component_details(
    credentials: ApiCredentials, topic: str, components: list[str],
) -> EnrichmentResult:
    """Enrich every component, one concurrent call per batch.

    Returns:
        EnrichmentResult whose data concatenates successful batches in
        submission order, with one usage record per batch call.
    """
    batches = make_batches(list(components), settings.pipeline.enrich_batch_size)
    logger.info("Enriching %d component(s) in %d batch(es)", len(components), len(batches))

    outcomes = await asyncio.gather(
        *(enrich_batch(credentials, topic, batch, index=i) for i, batch in enumerate(batches))
    )

    merged: list[ComponentPart] = []
    for outcome in outcomes:
        merged.extend(outcome.components)

    failed = [o.index + 1 for o in outcomes if not o.ok]
    if failed:
        logger.warning("Enrichment finished with unparsable batch(es): %s", failed)

    return EnrichmentResult(
        data=merged,
        usage=[o.usage for o in outcomes if o.usage is not None],
        outcomes=tuple(outcomes),
    )
