"""
Thin Anthropic client with primary/fallback key handling.

Callers pass an opaque prompt and get text back; prompts are not a contract.
`parse_json_response` pulls JSON out of chatty model output.
"""

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Any, List, Tuple

from anthropic import AsyncAnthropic

from config import get_settings, Settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Text generation unavailable (no key configured, or every key failed)."""


@dataclass
class LLMResponse:
    content: str
    model: str
    key_type: str  # "primary" or "fallback"


class LLMClient:
    """Messages API wrapper that tries the primary key, then the fallback key."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.model = self.settings.llm_model

    def _api_keys(self) -> List[Tuple[str, str]]:
        api_keys = []
        if self.settings.anthropic_api_key:
            api_keys.append(("primary", self.settings.anthropic_api_key))
        if self.settings.anthropic_api_key_fallback:
            api_keys.append(("fallback", self.settings.anthropic_api_key_fallback))
        return api_keys

    @property
    def is_configured(self) -> bool:
        return bool(self._api_keys())

    async def call(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        system: Optional[str] = None
    ) -> LLMResponse:
        api_keys = self._api_keys()
        if not api_keys:
            raise LLMError("no API key configured")

        last_error: Optional[Exception] = None
        for key_type, api_key in api_keys:
            try:
                content = await self._create(api_key, prompt, temperature, max_tokens, system)
                if key_type == "fallback":
                    logger.warning("PRIMARY API KEY FAILED - Used fallback API key successfully")
                return LLMResponse(content=content, model=self.model, key_type=key_type)
            except Exception as e:
                last_error = e
                error_msg = str(e).lower()
                if "credit balance" in error_msg:
                    logger.error(f"API key ({key_type}) has no credits: {e}")
                elif "invalid_api_key" in error_msg or "authentication" in error_msg:
                    logger.error(f"API key ({key_type}) is invalid: {e}")
                else:
                    logger.warning(f"LLM call failed with {key_type} key: {e}")
                if key_type == "primary" and len(api_keys) > 1:
                    logger.info("Trying fallback API key...")

        raise LLMError(f"all API keys failed: {last_error}")

    async def _create(
        self,
        api_key: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
        system: Optional[str]
    ) -> str:
        client = AsyncAnthropic(api_key=api_key, timeout=self.settings.llm_timeout)

        kwargs = dict(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}]
        )
        if system:
            kwargs["system"] = system

        response = await client.messages.create(**kwargs)
        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ).strip()


def parse_json_response(text: str) -> Any:
    """
    Parse JSON from model output.

    Strips markdown fences, tries the whole text, then the first balanced
    {...} or [...] block. Raises ValueError if nothing parses.
    """
    if not text or not text.strip():
        raise ValueError("empty response")

    content = text.strip()

    # Remove markdown code blocks if present
    if content.startswith("```json"):
        content = content[7:]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    content = content.strip()

    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass

    # Whichever bracket opens first decides object vs array
    starts = [(content.find(c), c) for c in "{[" if content.find(c) != -1]
    if not starts:
        raise ValueError("no JSON found in response")
    start_idx, opener = min(starts)
    closer = "}" if opener == "{" else "]"

    depth = 0
    in_string = False
    escaped = False
    for i, char in enumerate(content[start_idx:], start_idx):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                try:
                    return json.loads(content[start_idx:i + 1])
                except json.JSONDecodeError as e:
                    raise ValueError(f"invalid JSON in response: {e}") from e

    raise ValueError("unbalanced JSON in response")


@lru_cache
def get_llm_client() -> LLMClient:
    return LLMClient()
