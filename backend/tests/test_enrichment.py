# backend/tests/test_enrichment.py
"""Batch enrichment: partitioning, citation broadcast, and partial failure."""

import logging
from types import SimpleNamespace

import pytest
from conftest import batch_names, components_json, default_respond, text_response

from omnipedia.errors import MissingPayloadError
from omnipedia.pipeline.enrichment import (
    enrich_batch,
    enrich_component_details,
    extract_sources,
    make_batches,
    parse_components,
)


def test_make_batches_preserves_order_and_sizes():
    names = [f"c{i}" for i in range(7)]
    batches = make_batches(names, 3)
    assert batches == [["c0", "c1", "c2"], ["c3", "c4", "c5"], ["c6"]]
    assert [n for batch in batches for n in batch] == names


def test_make_batches_empty_and_invalid_size():
    assert make_batches([], 3) == []
    with pytest.raises(ValueError):
        make_batches(["a"], 0)


def test_extract_sources_filters_provider_links_and_dedupes():
    response = text_response(
        "x",
        sources=(
            "https://en.wikipedia.org/wiki/Platen",
            "https://www.google.com/search?q=platen",
            "https://vertexaisearch.cloud.google.com/grounding/abc",
            "https://lh3.googleusercontent.com/img",
            "https://example.org/platen",
            "https://en.wikipedia.org/wiki/Platen",
        ),
    )
    assert extract_sources(response) == [
        "https://en.wikipedia.org/wiki/Platen",
        "https://example.org/platen",
    ]


def test_extract_sources_without_grounding_metadata():
    response = SimpleNamespace(candidates=[SimpleNamespace(grounding_metadata=None)])
    assert extract_sources(response) == []
    assert extract_sources(SimpleNamespace(candidates=None)) == []


def test_parse_components_accepts_fenced_plain_and_camel_case():
    fenced = parse_components(components_json(["Keys"]))
    plain = parse_components(components_json(["Keys"], fenced=False))
    camel = parse_components('{"components": [{"name": "Keys", "shortDescription": "Press", "composition": ["Steel", "Felt"]}]}')
    assert fenced[0].short_description == "Keys summary"
    assert plain == fenced
    assert camel[0].short_description == "Press"
    assert camel[0].composition == "Steel, Felt"


def test_parse_components_rejects_garbage():
    with pytest.raises(ValueError):
        parse_components("Sorry, I could not find anything.")


def test_parse_components_requires_components_key():
    with pytest.raises(ValueError):
        parse_components('{"parts": [{"name": "Keys"}]}')
    assert parse_components('{"components": []}') == []


@pytest.mark.asyncio
async def test_batch_sources_are_broadcast_to_every_component(credentials, fake_genai):
    outcome = await enrich_batch(credentials, "Typewriter", ["Keys", "Platen"])
    assert outcome.ok
    assert [c.name for c in outcome.components] == ["Keys", "Platen"]
    for component in outcome.components:
        assert component.sources == ["https://en.wikipedia.org/wiki/Typewriter"]
    assert outcome.usage.input_tokens == 400
    # Search grounding tool is attached to the call
    assert fake_genai.calls[0].config.tools


@pytest.mark.asyncio
async def test_seven_components_make_three_concurrent_batches(credentials, fake_genai):
    names = ["A", "B", "C", "D", "E", "F", "G"]
    result = await enrich_component_details(credentials, "Typewriter", names)

    assert len(fake_genai.calls) == 3
    assert [batch_names(call.contents) for call in fake_genai.calls] == [["A", "B", "C"], ["D", "E", "F"], ["G"]]
    assert [c.name for c in result.data] == names
    assert len(result.usage) == 3
    assert result.failed_batches == []


@pytest.mark.asyncio
async def test_unparsable_batch_is_dropped_but_others_merge(credentials, fake_genai, caplog):
    def respond(model, contents, config):
        if "D, E, F" in contents:
            return text_response("I am not JSON", 400, 30)
        return default_respond(model, contents, config)

    fake_genai.respond = respond
    names = ["A", "B", "C", "D", "E", "F", "G"]
    with caplog.at_level(logging.ERROR, logger="omnipedia.pipeline.enrichment"):
        result = await enrich_component_details(credentials, "Typewriter", names)

    assert [c.name for c in result.data] == ["A", "B", "C", "G"]
    # Parse failures are not retried and their call is still billed
    assert len(fake_genai.calls) == 3
    assert len(result.usage) == 3
    assert [o.index for o in result.failed_batches] == [1]
    assert any("Batch 2" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_empty_response_is_retried_then_fails_stage(credentials, fake_genai):
    def respond(model, contents, config):
        if batch_names(contents) == ["G"]:
            return text_response(None)
        return default_respond(model, contents, config)

    fake_genai.respond = respond
    with pytest.raises(MissingPayloadError, match="empty response"):
        await enrich_component_details(credentials, "Typewriter", ["A", "B", "C", "G"])
    # Batch 1 once, batch 2 three times
    assert len(fake_genai.calls) == 4


@pytest.mark.asyncio
async def test_batch_without_components_key_is_reported_failed(credentials, fake_genai):
    def respond(model, contents, config):
        if batch_names(contents) == ["G"]:
            return text_response('{"parts": [{"name": "G"}]}', 400, 30)
        return default_respond(model, contents, config)

    fake_genai.respond = respond
    result = await enrich_component_details(credentials, "Typewriter", ["A", "B", "C", "G"])

    assert [c.name for c in result.data] == ["A", "B", "C"]
    assert [o.names for o in result.failed_batches] == [("G",)]
    assert len(fake_genai.calls) == 2
