"""Narration: script generation followed by text-to-speech.

Two sequential calls, each retried on its own. The TTS model returns raw
16-bit mono PCM which is wrapped in a WAV header before being saved.
"""

import logging

from google.genai import types

from omnipedia.config import settings
from omnipedia.errors import MissingPayloadError
from omnipedia.pipeline.images import first_inline_data
from omnipedia.pipeline.prompts import narration_script_prompt
from omnipedia.schemas.generation import NarrationResult, StageResult
from omnipedia.schemas.plan import ObjectPlan
from omnipedia.services.audio import pcm_to_wav
from omnipedia.services.file_manager import FileManager
from omnipedia.services.genai_client import ApiCredentials
from omnipedia.services.pricing import asset_usage, usage_from_response
from omnipedia.services.retry import call_with_policy

logger = logging.getLogger(__name__)

# Prebuilt voices the narration stage accepts
ALLOWED_VOICES = ("Puck", "Charon", "Kore", "Fenrir", "Zephyr")


def select_voice(voice_name: str | None) -> str:
    """Return ``voice_name`` if it is an allowed voice, else the default."""
    if voice_name in ALLOWED_VOICES:
        return voice_name
    return settings.pipeline.default_voice


async def generate_narration_script(
    credentials: ApiCredentials, topic: str, plan: ObjectPlan,
) -> StageResult[str]:
    """Write the spoken script from the plan's origin story, article and trivia."""
    model = settings.models.script
    prompt = narration_script_prompt(topic, plan, settings.pipeline.narration_source_chars)

    async def _call() -> StageResult[str]:
        client = credentials.client()
        response = await client.aio.models.generate_content(model=model, contents=prompt)
        return StageResult(data=(response.text or "").strip(), usage=[usage_from_response(model, response)])

    result = await call_with_policy(_call, settings.retry.script, "Script Gen")
    if not result.data:
        raise MissingPayloadError("Failed to generate script")
    return result


async def synthesize_speech(
    credentials: ApiCredentials, script: str, voice_name: str | None,
) -> StageResult[bytes]:
    """Synthesize ``script`` and return WAV bytes."""
    model = settings.models.tts
    voice = select_voice(voice_name)

    async def _call() -> StageResult[bytes]:
        client = credentials.client()
        response = await client.aio.models.generate_content(
            model=model,
            contents=script,
            config=types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice),
                    ),
                ),
            ),
        )
        blob = first_inline_data(response)
        if blob is None:
            raise MissingPayloadError("No audio data returned")
        wav = pcm_to_wav(blob.data, sample_rate=settings.pipeline.tts_sample_rate)
        # TTS is priced per input character
        return StageResult(data=wav, usage=[asset_usage(model, len(script))])

    return await call_with_policy(_call, settings.retry.tts, "TTS Gen")


async def generate_audio_narration(
    credentials: ApiCredentials,
    topic: str,
    plan: ObjectPlan,
    *,
    item_id: str,
    file_manager: FileManager,
) -> StageResult[NarrationResult]:
    """Generate the narration script, synthesize it and save the WAV.

    Returns:
        StageResult with the audio file URI and script, and two usage
        records (script, then TTS).
    """
    script = await generate_narration_script(credentials, topic, plan)
    speech = await synthesize_speech(credentials, script.data, plan.audio_vibe.voice_name)

    path = file_manager.save_audio(item_id, speech.data)
    logger.info("Narration saved for item %s (%d chars of script)", item_id, len(script.data))
    return StageResult(
        data=NarrationResult(url=path.as_uri(), script=script.data),
        usage=script.usage + speech.usage,
    )
