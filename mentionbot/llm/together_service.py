"""
mentionbot/llm/together_service.py

Chat-completion runner for Together AI through its OpenAI-compatible API.

Picks the vision model when the request carries an image, applies a
per-attempt timeout, and retries retryable failures (rate limit, timeout,
connection, 5xx) before raising a classified LLMError.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from openai import AsyncOpenAI

from .errors import LLMError, wrap_openai_error

TOGETHER_BASE_URL = "https://api.together.xyz/v1"
DEFAULT_TEXT_MODEL = "meta-llama/Llama-3.3-70B-Instruct-Turbo-Free"
DEFAULT_VISION_MODEL = "meta-llama/Llama-Vision-Free"
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_RETRIES = 1
RETRY_DELAY_SECONDS = 1.0


def build_openai_client(llm_cfg: dict) -> AsyncOpenAI:
    # SDK-level retries are disabled; TogetherService owns the retry policy.
    return AsyncOpenAI(
        base_url=llm_cfg.get("base_url") or TOGETHER_BASE_URL,
        api_key=llm_cfg.get("api_key") or "sk-no-key-required",
        max_retries=0,
    )


def has_image(messages: List[Dict[str, Any]]) -> bool:
    for m in messages:
        content = m.get("content")
        if isinstance(content, list) and any(
            isinstance(part, dict) and part.get("type") == "image_url" for part in content
        ):
            return True
    return False


class TogetherService:
    def __init__(
        self,
        client: AsyncOpenAI,
        text_model: str = DEFAULT_TEXT_MODEL,
        vision_model: str = DEFAULT_VISION_MODEL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
    ):
        self.client = client
        self.text_model = text_model
        self.vision_model = vision_model
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.retry_delay = retry_delay

    @classmethod
    def from_config(cls, llm_cfg: dict) -> "TogetherService":
        return cls(
            build_openai_client(llm_cfg),
            text_model=llm_cfg.get("text_model") or DEFAULT_TEXT_MODEL,
            vision_model=llm_cfg.get("vision_model") or DEFAULT_VISION_MODEL,
            timeout=float(llm_cfg.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
            max_retries=int(llm_cfg.get("max_retries", DEFAULT_MAX_RETRIES)),
        )

    def select_model(self, messages: List[Dict[str, Any]]) -> str:
        return self.vision_model if has_image(messages) else self.text_model

    async def complete(self, messages: List[Dict[str, Any]]) -> str | None:
        """
        Run one chat completion and return the reply text.

        Returns None when the API answers without a message or content.
        Raises LLMError once retries are exhausted or on a fatal error.
        """
        model = self.select_model(messages)
        attempt = 0
        while True:
            try:
                completion = await asyncio.wait_for(
                    self.client.chat.completions.create(model=model, messages=messages),
                    timeout=self.timeout,
                )
                break
            except Exception as e:
                error = wrap_openai_error(e)
                if not error.retryable or attempt >= self.max_retries:
                    logging.warning(
                        "TogetherService: %s failed after %d attempt(s): %s",
                        model, attempt + 1, error,
                    )
                    raise error
                attempt += 1
                logging.warning(
                    "TogetherService: %s attempt %d failed (%s), retrying",
                    model, attempt, type(error).__name__,
                )
                await asyncio.sleep(self.retry_delay * attempt)

        choice = completion.choices[0] if completion.choices else None
        message = getattr(choice, "message", None)
        if message is None:
            logging.warning("TogetherService: %s returned no message", model)
            return None
        logging.info("TogetherService: %s responded, content=%r", model, message.content)
        return message.content

    async def close(self) -> None:
        await self.client.close()


__all__ = ["TogetherService", "LLMError", "build_openai_client", "has_image"]
