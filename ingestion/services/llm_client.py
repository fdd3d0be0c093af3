"""Anthropic client wrapper and tolerant JSON extraction for model replies."""
import json
import logging
import re
from typing import Any, Optional

import anthropic

from ingestion.config import Settings
from ingestion.exceptions import (
    LLMAuthenticationError,
    LLMModelNotFoundError,
    LLMRateLimitError,
    LLMUnavailableError,
    MalformedLLMResponseError,
)

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```")
_ANY_FENCE = re.compile(r"```\s*([\s\S]*?)\s*```")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_UNQUOTED_KEY = re.compile(r"([{,]\s*)([A-Za-z_]\w*)\s*:")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def _clean_json(raw: str) -> str:
    cleaned = _CONTROL_CHARS.sub(" ", raw)
    cleaned = _TRAILING_COMMA.sub(r"\1", cleaned)
    return _UNQUOTED_KEY.sub(r'\1"\2":', cleaned)


def _between(text: str, opening: str, closing: str) -> Optional[str]:
    start, end = text.find(opening), text.rfind(closing)
    if start != -1 and end > start:
        return text[start:end + 1]
    return None


def extract_json(text: str) -> Any:
    """
    Parse JSON from a model reply that may wrap it in fences or prose.

    Tries, in order: the whole text, a ```json fence, any fence, the outermost
    {...} span and the outermost [...] span.

    Raises:
        MalformedLLMResponseError: if no candidate parses
    """
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        pass

    json_fence = _JSON_FENCE.search(text)
    any_fence = _ANY_FENCE.search(text)
    candidates = [
        json_fence.group(1) if json_fence else None,
        any_fence.group(1) if any_fence else None,
        _between(text, "{", "}"),
        _between(text, "[", "]"),
    ]
    for index, candidate in enumerate(candidates, start=1):
        if not candidate:
            continue
        for attempt in (candidate, _clean_json(candidate)):
            try:
                return json.loads(attempt, strict=False)
            except ValueError:
                continue
        logger.debug(f"JSON extraction method {index} failed")
    raise MalformedLLMResponseError("No valid JSON found in model response")


class ClaudeMappingClient:
    """Thin wrapper over ``messages.create`` that maps SDK errors to pipeline errors."""

    def __init__(self, client, max_tokens: int = 2000, temperature: float = 0.1):
        self.client = client
        self.max_tokens = max_tokens
        self.temperature = temperature

    def complete(self, prompt: str, model: str, max_tokens: Optional[int] = None) -> str:
        """
        Send one user prompt and return the reply text.

        Raises:
            LLMAuthenticationError: on 401
            LLMModelNotFoundError: on 404
            LLMRateLimitError: on 429
            LLMUnavailableError: on connection failures and other API errors
        """
        logger.info(f"🤖 Calling {model}")
        try:
            response = self.client.messages.create(
                model=model,
                max_tokens=max_tokens or self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.AuthenticationError as e:
            logger.error(f"Model API authentication failed: {e}")
            raise LLMAuthenticationError() from e
        except anthropic.NotFoundError as e:
            logger.error(f"Model {model} not found: {e}")
            raise LLMModelNotFoundError(model) from e
        except anthropic.RateLimitError as e:
            logger.warning(f"Model API rate limited: {e}")
            raise LLMRateLimitError() from e
        except (anthropic.APIConnectionError, anthropic.APIStatusError) as e:
            logger.warning(f"Model API unavailable: {e}")
            raise LLMUnavailableError(f"Language model API unavailable: {e}") from e

        text = "".join(
            getattr(block, "text", "") for block in response.content if getattr(block, "type", "text") == "text"
        )
        if not text:
            raise MalformedLLMResponseError("Model response contained no text")
        return text

    def complete_json(self, prompt: str, model: str, max_tokens: Optional[int] = None) -> Any:
        return extract_json(self.complete(prompt, model, max_tokens=max_tokens))


def build_llm_client(settings: Settings) -> Optional[ClaudeMappingClient]:
    """Create the model client, or None when no API key is configured."""
    if not settings.anthropic_api_key:
        logger.info("No Anthropic API key configured, using deterministic mapping only")
        return None
    return ClaudeMappingClient(
        anthropic.Anthropic(api_key=settings.anthropic_api_key),
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
    )
