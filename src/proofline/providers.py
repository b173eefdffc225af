"""LLM providers for the optional major-event summary enrichment."""

import json
import os
from dataclasses import asdict

import httpx

from proofline.config import Settings, load_env
from proofline.errors import EnrichmentFailure
from proofline.models import LLMProviderConfig, MajorEvent, TimelineEvent

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
    "google": "gemini-2.5-flash",
}

ENV_KEYS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
}

SYSTEM_PROMPT = (
    "You summarize coding-session incidents as short sports-commentary headlines. "
    "Keep it factual, one sentence, <= 28 words."
)

MAX_FOLLOWUPS = 6


def config_from_settings(settings: Settings) -> LLMProviderConfig | None:
    """Build a provider config from settings, or None when enrichment is not configured."""
    provider = (settings.llm_provider or "").lower()
    if not provider:
        return None
    if provider not in ENV_KEYS:
        raise ValueError(f"Unknown LLM provider: {provider}. Available: {list(ENV_KEYS)}")

    load_env()
    api_key = os.environ.get(ENV_KEYS[provider])
    if not api_key:
        raise ValueError(
            f"API key not found: set {ENV_KEYS[provider]} environment variable "
            f"or add it to a .env file."
        )
    return LLMProviderConfig(
        provider=provider,
        api_key=api_key,
        model=settings.llm_model or DEFAULT_MODELS[provider],
        base_url=settings.llm_base_url,
    )


def _event_payload(event: TimelineEvent | None) -> dict | None:
    if event is None:
        return None
    data = asdict(event)
    data["actor"] = str(getattr(event.actor, "value", event.actor))
    return data


def build_messages(major: MajorEvent, timeline: list[TimelineEvent]) -> list[dict]:
    """Chat messages describing one major event with its trigger and follow-ups."""
    by_id = {e.id: e for e in timeline}
    followups = [by_id[i] for i in major.follow_up_event_ids if i in by_id][:MAX_FOLLOWUPS]
    payload = {
        "eventType": major.type.value,
        "eventTitle": major.title,
        "eventSummary": major.summary,
        "trigger": _event_payload(by_id.get(major.trigger_event_id)),
        "followups": [_event_payload(e) for e in followups],
    }
    return [{"role": "user", "content": json.dumps(payload, ensure_ascii=False, indent=2)}]


async def _send_openai(config: LLMProviderConfig, messages: list[dict]) -> str:
    """Send via the OpenAI SDK (also handles OpenAI-compatible base URLs)."""
    from openai import AsyncOpenAI
    kwargs = {"api_key": config.api_key}
    if config.base_url:
        kwargs["base_url"] = config.base_url
    client = AsyncOpenAI(**kwargs)

    response = await client.chat.completions.create(
        model=config.model,
        messages=[{"role": "system", "content": SYSTEM_PROMPT}, *messages],
        temperature=0.2,
    )
    return response.choices[0].message.content or ""


async def _send_google(config: LLMProviderConfig, messages: list[dict]) -> str:
    """Send via the Google GenAI SDK."""
    from google import genai

    client = genai.Client(api_key=config.api_key)
    contents = [
        genai.types.Content(role="user", parts=[genai.types.Part(text=m["content"])])
        for m in messages
    ]
    response = await client.aio.models.generate_content(
        model=config.model,
        contents=contents,
        config=genai.types.GenerateContentConfig(
            system_instruction=SYSTEM_PROMPT,
            temperature=0.2,
        ),
    )
    return response.text or ""


async def _send_anthropic(config: LLMProviderConfig, messages: list[dict]) -> str:
    """Send via the Anthropic Messages API using httpx directly."""
    base_url = config.base_url or "https://api.anthropic.com/v1"
    body = {
        "model": config.model,
        "max_tokens": 300,
        "temperature": 0.2,
        "system": SYSTEM_PROMPT,
        "messages": messages,
    }
    async with httpx.AsyncClient(timeout=60.0) as client:
        response = await client.post(
            f"{base_url}/messages",
            headers={
                "x-api-key": config.api_key,
                "anthropic-version": "2023-06-01",
                "content-type": "application/json",
            },
            json=body,
        )
    response.raise_for_status()
    data = response.json()
    return "".join(
        block.get("text", "") for block in data.get("content", [])
        if block.get("type") == "text"
    )


_DISPATCH = {
    "openai": _send_openai,
    "google": _send_google,
    "anthropic": _send_anthropic,
}


async def summarize_major_event(config: LLMProviderConfig, major: MajorEvent,
                                timeline: list[TimelineEvent]) -> str:
    """One-line generated summary for a major event.

    Raises EnrichmentFailure when the provider is unknown or the answer is empty.
    """
    if not config.enabled or not config.api_key:
        return ""
    send = _DISPATCH.get(config.provider)
    if send is None:
        raise EnrichmentFailure(f"Unknown LLM provider: {config.provider}")

    text = (await send(config, build_messages(major, timeline))).strip()
    if not text:
        raise EnrichmentFailure(f"Empty summary from {config.provider}")
    return text
