from __future__ import annotations

import logging
from typing import Any, Dict, List

from openai import APIError, APITimeoutError, AsyncOpenAI

from .config import LLMConfig
from .errors import UpstreamError

LOGGER = logging.getLogger(__name__)


class LLMClient:
    """Wrapper around the async OpenAI client that returns raw completion text.

    Parsing is left to the response parser so that malformed output can be
    reported separately from transport failures.
    """

    def __init__(self, conf: LLMConfig, client: AsyncOpenAI | None = None) -> None:
        self._conf = conf
        if client is None:
            api_key = conf.resolve_api_key()
            if not api_key:
                msg = (
                    f"LLM API key is not configured; set {conf.api_key_env} "
                    "or llm.api_key in the configuration"
                )
                raise RuntimeError(msg)
            client = AsyncOpenAI(
                api_key=api_key,
                base_url=conf.base_url,
                organization=conf.organization,
                timeout=conf.request_timeout,
                max_retries=0,
            )
        self._client = client

    @property
    def model_name(self) -> str:
        return self._conf.model

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """Call the chat completion endpoint and return the message text."""

        api_params: Dict[str, Any] = {
            "model": self._conf.model,
            "messages": messages,
            "temperature": self._conf.temperature,
        }
        if self._conf.max_output_tokens is not None:
            api_params["max_tokens"] = self._conf.max_output_tokens
        if self._conf.json_mode:
            api_params["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**api_params)
        except APITimeoutError as exc:
            raise UpstreamError(
                f"LLM request timed out after {self._conf.request_timeout:.0f}s"
            ) from exc
        except APIError as exc:
            raise UpstreamError(f"LLM request failed: {exc}") from exc

        usage = getattr(response, "usage", None)
        if usage:
            LOGGER.debug(
                "LLM usage: %s prompt + %s completion tokens",
                getattr(usage, "prompt_tokens", 0),
                getattr(usage, "completion_tokens", 0),
            )

        if not response.choices:
            raise UpstreamError("LLM response does not contain choices")

        choice = response.choices[0]
        finish_reason = getattr(choice, "finish_reason", None)
        if finish_reason and finish_reason != "stop":
            LOGGER.warning("LLM response ended with finish_reason=%s", finish_reason)

        return (choice.message.content or "").strip()
