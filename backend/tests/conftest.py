# backend/tests/conftest.py
"""Shared fixtures: an in-memory google-genai client and fast settings.

The fake client records every call and answers through a ``respond``
callable, so tests can script successes, failures and payloads per model
without touching the network.
"""

import json
import re
from types import SimpleNamespace
from typing import Any, Callable, Optional

import pytest

from omnipedia.config import RetryPolicy, settings
from omnipedia.schemas.plan import ObjectPlan
from omnipedia.services.audio import to_data_url
from omnipedia.services.file_manager import FileManager
from omnipedia.services.genai_client import ApiCredentials

COMPONENT_NAMES = ["Keys", "Typebars", "Platen", "Ribbon", "Carriage", "Escapement", "Bell"]

PLAN_PAYLOAD = {
    "display_title": "The Typewriter",
    "category": "Office Machinery",
    "domain_type": "PHYSICAL",
    "visual_metaphor": "Exploded View",
    "section_titles": {
        "origin": "History",
        "anatomy": "Components",
        "article": "How it works",
        "trivia": "Did You Know?",
    },
    "origin_story": "A mechanical writing machine from the 1860s.",
    "detailed_article": "Each key drives a typebar against an inked ribbon. " * 60,
    "trivia": ["QWERTY", "Sholes", "Remington", "Carbon copies", "Bell"],
    "visual_style_prompt": "Clean blueprint linework",
    "component_list": COMPONENT_NAMES,
    "audio_vibe": {"voice_name": "Charon", "tone_description": "Warm historian"},
}

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"
PCM_BYTES = b"\x01\x00" * 480
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42fake-video"
VIDEO_URI = "https://generativelanguage.example/files/video.mp4"

_COMPONENTS_LINE = re.compile(r"^COMPONENTS: (.*)$", re.MULTILINE)


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------

def text_response(
    text: Optional[str],
    prompt_tokens: int = 100,
    output_tokens: int = 50,
    sources: tuple[str, ...] = (),
) -> SimpleNamespace:
    """A generate_content response carrying text and optional citations."""
    chunks = [SimpleNamespace(web=SimpleNamespace(uri=uri)) for uri in sources]
    candidate = SimpleNamespace(
        content=SimpleNamespace(parts=[]),
        grounding_metadata=SimpleNamespace(grounding_chunks=chunks),
    )
    return SimpleNamespace(
        text=text,
        candidates=[candidate],
        usage_metadata=SimpleNamespace(
            prompt_token_count=prompt_tokens, candidates_token_count=output_tokens,
        ),
    )


def inline_response(data: bytes, mime_type: str) -> SimpleNamespace:
    """A generate_content response carrying one inline binary part."""
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type))
    candidate = SimpleNamespace(content=SimpleNamespace(parts=[part]), grounding_metadata=None)
    return SimpleNamespace(text=None, candidates=[candidate], usage_metadata=None)


def components_json(names: list[str], fenced: bool = True) -> str:
    payload = json.dumps({
        "components": [
            {
                "name": name,
                "short_description": f"{name} summary",
                "detailed_content": f"## {name}\nDetails.",
                "composition": "Steel",
            }
            for name in names
        ]
    })
    return f"```json\n{payload}\n```" if fenced else payload


def video_operation(done: bool, uri: Optional[str] = VIDEO_URI, error: Any = None) -> SimpleNamespace:
    video = SimpleNamespace(video_bytes=None, uri=uri)
    response = SimpleNamespace(generated_videos=[SimpleNamespace(video=video)]) if done else None
    return SimpleNamespace(name="operations/video-1", done=done, error=error, response=response)


def batch_names(contents: str) -> list[str]:
    """Recover the component names a deep-dive prompt asked for."""
    match = _COMPONENTS_LINE.search(contents)
    return match.group(1).split(", ") if match else []


def default_respond(model: str, contents: Any, config: Any) -> SimpleNamespace:
    """Happy-path answers for every stage, keyed by model and config."""
    if model == settings.models.planning:
        return text_response(json.dumps(PLAN_PAYLOAD), 1200, 900)
    if model == settings.models.image:
        return inline_response(PNG_BYTES, "image/png")
    if config is not None and getattr(config, "tools", None):
        return text_response(
            components_json(batch_names(contents)),
            400,
            600,
            sources=("https://en.wikipedia.org/wiki/Typewriter", "https://vertexaisearch.cloud.google.com/x"),
        )
    if model == settings.models.tts:
        return inline_response(PCM_BYTES, "audio/L16;rate=24000")
    if model == settings.models.script:
        return text_response("Meet the typewriter.", 300, 120)
    if model == settings.models.surprise:
        return text_response('"Mechanical Calculator"', 20, 5)
    raise AssertionError(f"Unexpected model {model}")


# ---------------------------------------------------------------------------
# Fake client
# ---------------------------------------------------------------------------

class FakeModels:
    def __init__(self, fake: "FakeGenAI"):
        self._fake = fake

    async def generate_content(self, *, model, contents, config=None):
        self._fake.calls.append(SimpleNamespace(model=model, contents=contents, config=config))
        return self._fake.respond(model, contents, config)

    async def generate_videos(self, *, model, prompt, image=None, config=None):
        self._fake.calls.append(SimpleNamespace(model=model, contents=prompt, config=config, image=image))
        return self._fake.submit_video(model, prompt, image, config)


class FakeOperations:
    def __init__(self, fake: "FakeGenAI"):
        self._fake = fake

    async def get(self, operation):
        self._fake.polls += 1
        return self._fake.poll_video(operation)


class FakeGenAI:
    """Stands in for genai.Client; only the async surface is used."""

    def __init__(self, respond: Callable[[str, Any, Any], Any] = default_respond):
        self.respond = respond
        self.submit_video: Callable[..., Any] = lambda *args: video_operation(done=False)
        self.poll_video: Callable[[Any], Any] = lambda operation: video_operation(done=True)
        self.calls: list[SimpleNamespace] = []
        self.polls = 0
        self.aio = SimpleNamespace(models=FakeModels(self), operations=FakeOperations(self))

    def models_called(self) -> list[str]:
        return [call.model for call in self.calls]


class FakeCredentials(ApiCredentials):
    """ApiCredentials that hands out the fake client."""

    def __init__(self, fake: FakeGenAI, api_key: Optional[str] = "test-key"):
        super().__init__(api_key=api_key)
        self.fake = fake

    def client(self):
        if not self.is_configured:
            return super().client()
        return self.fake


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    """Zero every retry delay and the video poll interval."""
    for name in type(settings.retry).model_fields:
        policy = getattr(settings.retry, name)
        monkeypatch.setattr(settings.retry, name, RetryPolicy(attempts=policy.attempts, base_delay=0))
    monkeypatch.setattr(settings.pipeline, "video_poll_interval", 0)
    monkeypatch.setattr(settings.pipeline, "video_poll_max", 5)


@pytest.fixture
def fake_genai():
    return FakeGenAI()


@pytest.fixture
def credentials(fake_genai):
    return FakeCredentials(fake_genai)


@pytest.fixture
def file_manager(tmp_path):
    return FileManager(tmp_path / "media")


@pytest.fixture
def plan():
    return ObjectPlan.model_validate(PLAN_PAYLOAD)


@pytest.fixture
def image_url():
    return to_data_url(PNG_BYTES, "image/png")
