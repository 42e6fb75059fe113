"""Approximate per-call cost estimation.

Prices are static USD estimates keyed by model ID. Text models are priced
per 1k input/output tokens, image and video models per asset, and the TTS
model per 1k input characters.
"""

from typing import Any

from omnipedia.schemas.generation import TokenUsage

PRICING: dict[str, dict[str, float]] = {
    "gemini-3-pro-preview": {
        "input_per_1k_tokens": 0.00125,
        "output_per_1k_tokens": 0.005,
    },
    "gemini-2.5-flash": {
        "input_per_1k_tokens": 0.0001,
        "output_per_1k_tokens": 0.0004,
    },
    "gemini-flash-lite-latest": {
        "input_per_1k_tokens": 0.000075,
        "output_per_1k_tokens": 0.0003,
    },
    "gemini-3-pro-image-preview": {"per_image": 0.04},
    "veo-3.1-generate-preview": {"per_video": 0.10},
    "gemini-2.5-flash-preview-tts": {"per_1k_chars": 0.002},
}


def calculate_cost(model: str, input_units: float, output_units: float) -> float:
    """Estimate the cost of one API call.

    Asset-priced models ignore the unit counts. Unknown models cost 0.

    Args:
        model: Model identifier.
        input_units: Input tokens (or characters for TTS).
        output_units: Output tokens.

    Returns:
        Cost in USD rounded to 5 decimal places.
    """
    rates = PRICING.get(model)
    if rates is None:
        return 0.0

    if "per_image" in rates:
        cost = rates["per_image"]
    elif "per_video" in rates:
        cost = rates["per_video"]
    elif "per_1k_chars" in rates:
        cost = (input_units / 1000) * rates["per_1k_chars"]
    else:
        cost = (input_units / 1000) * rates["input_per_1k_tokens"]
        cost += (output_units / 1000) * rates["output_per_1k_tokens"]

    return round(cost, 5)


def usage_from_response(model: str, response: Any) -> TokenUsage:
    """Build a TokenUsage record from a generate_content response."""
    metadata = getattr(response, "usage_metadata", None)
    input_tokens = getattr(metadata, "prompt_token_count", None) or 0
    output_tokens = getattr(metadata, "candidates_token_count", None) or 0
    return TokenUsage(
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cost_estimate=calculate_cost(model, input_tokens, output_tokens),
    )


def asset_usage(model: str, input_units: int) -> TokenUsage:
    """Build a TokenUsage record for an asset-priced or character-priced call."""
    return TokenUsage(
        model=model,
        input_tokens=input_units,
        output_tokens=0,
        cost_estimate=calculate_cost(model, input_units, 0),
    )
