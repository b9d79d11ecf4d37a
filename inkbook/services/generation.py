"""
Client for an OpenAI-compatible generation API: tattoo design images and
long-form blog articles.
"""
import asyncio
import json
import logging

import requests

from inkbook.config import GenerationSettings, get_settings
from inkbook.errors import ExternalServiceError
from inkbook.models.credits import Article

logger = logging.getLogger(__name__)

ARTICLE_SYSTEM_PROMPT = (
    "You write articles for a tattoo marketplace blog. "
    'Answer with a JSON object of the form {"title": "...", "content": "..."}; '
    "content is markdown."
)


def _safe_trunc(s: str, n: int) -> str:
    return s if len(s) <= n else s[:n] + "…"


def design_prompt(prompt: str, style: str) -> str:
    return f"A {style} style tattoo design: {prompt}. Clean linework on a plain white background."


def _post_sync(settings: GenerationSettings, path: str, body: dict) -> dict:
    url = f"{settings.base_url.rstrip('/')}/{path}"
    headers = {
        "Authorization": f"Bearer {settings.api_key}",
        "Content-Type": "application/json",
    }
    try:
        resp = requests.post(url, headers=headers, json=body, timeout=settings.timeout_sec)
    except requests.RequestException as e:
        logger.exception("Generation request to %s failed", path)
        raise ExternalServiceError(detail="Generation service unreachable", service="generation") from e
    if not resp.ok:
        logger.warning("Generation non-OK response: %s %s", resp.status_code, _safe_trunc(resp.text, 500))
        raise ExternalServiceError(
            detail="Generation service rejected the request",
            service="generation",
            status=resp.status_code,
        )
    try:
        return resp.json()
    except ValueError as e:
        raise ExternalServiceError(detail="Generation service returned invalid JSON", service="generation") from e


def _generate_image_sync(settings: GenerationSettings, prompt: str, style: str) -> str:
    data = _post_sync(
        settings,
        "images/generations",
        {"model": settings.image_model, "prompt": design_prompt(prompt, style), "n": 1, "size": settings.image_size},
    )
    try:
        return data["data"][0]["url"]
    except (KeyError, IndexError, TypeError):
        raise ExternalServiceError(detail="Generation service returned no image", service="generation") from None


def _generate_article_sync(settings: GenerationSettings, topic: str) -> Article:
    data = _post_sync(
        settings,
        "chat/completions",
        {
            "model": settings.text_model,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": ARTICLE_SYSTEM_PROMPT},
                {"role": "user", "content": f"Write an article about: {topic}"},
            ],
        },
    )
    try:
        content = data["choices"][0]["message"]["content"]
        return Article.model_validate(json.loads(content))
    except (KeyError, IndexError, TypeError, ValueError):
        logger.warning("Unparseable article completion: %s", _safe_trunc(str(data), 300))
        raise ExternalServiceError(detail="Generation service returned a malformed article", service="generation") from None


def _require_key(settings: GenerationSettings) -> None:
    if not settings.api_key:
        raise ExternalServiceError(detail="Generation service is not configured", service="generation")


async def generate_design_image(prompt: str, style: str) -> str:
    settings = get_settings().generation
    _require_key(settings)
    return await asyncio.to_thread(_generate_image_sync, settings, prompt, style)


async def generate_article(topic: str) -> Article:
    settings = get_settings().generation
    _require_key(settings)
    return await asyncio.to_thread(_generate_article_sync, settings, topic)
