"""Single entry point for structured and free-text model calls."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from .config import Settings
from .errors import DigestError, EmptyResponseError, ModelCallError, TruncationError
from .schema import FACTS_SCHEMA_NAME, response_format


def build_client(api_key: Optional[str] = None) -> AsyncOpenAI:
    """Create an async OpenAI client; separated for easier testing."""
    return AsyncOpenAI(api_key=api_key)


def _require_api_key(settings: Settings) -> str:
    if not settings.openai_api_key:
        raise DigestError(
            "OPENAI_API_KEY is required. Set it in the environment or .env file."
        )
    return settings.openai_api_key


def _response_text_or_raise(response: object, *, step: str) -> str:
    """Extract response text or raise a clear error when output is missing."""
    text = getattr(response, "output_text", None)
    if isinstance(text, str) and text.strip():
        return text

    status = getattr(response, "status", None)
    if status == "incomplete":
        details = getattr(response, "incomplete_details", None)
        reason = getattr(details, "reason", None) if details else None
        if reason == "max_output_tokens":
            raise TruncationError(
                f"{step}: response incomplete due to max_output_tokens. Increase "
                "FEED_DIGEST_MAX_OUTPUT_TOKENS or reduce the input size (lower "
                "FEED_DIGEST_MAX_INPUT_TOKENS for smaller batches)."
            )
        raise EmptyResponseError(f"{step}: response incomplete (reason={reason}).")

    err = getattr(response, "error", None)
    if err:
        raise EmptyResponseError(f"{step}: response error: {err}")

    raise EmptyResponseError(f"{step}: empty response.")


class ModelClient:
    """Thin wrapper over the Responses API with an optional output schema."""

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None) -> None:
        self.settings = settings
        self._client = client

    async def aclose(self) -> None:
        """Close the underlying HTTP client if one was built."""
        if self._client is not None:
            await self._client.close()

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = build_client(_require_api_key(self.settings))
        return self._client

    def _request_args(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Optional[Dict[str, Any]],
        schema_name: str,
    ) -> Dict[str, Any]:
        settings = self.settings
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        request_args: Dict[str, Any] = {
            "model": settings.model,
            "input": messages,
            "max_output_tokens": settings.max_output_tokens,
        }
        if settings.reasoning_effort:
            request_args["reasoning"] = {"effort": settings.reasoning_effort}
        text_args: Dict[str, Any] = {}
        if settings.text_verbosity:
            text_args["verbosity"] = settings.text_verbosity
        if schema is not None:
            text_args["format"] = response_format(schema, schema_name)
        if text_args:
            request_args["text"] = text_args
        return request_args

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        schema: Optional[Dict[str, Any]] = None,
        schema_name: str = FACTS_SCHEMA_NAME,
        step: str = "model call",
    ) -> str:
        """
        Send one request and return its text.

        With ``schema`` the text is the JSON document produced under the strict
        schema; without it the text is free Markdown.
        """
        request_args = self._request_args(system_prompt, user_prompt, schema, schema_name)
        model = self.settings.model
        try:
            response = await self.client.responses.create(**request_args)
        except openai.APIStatusError as exc:
            raise ModelCallError(
                f"OpenAI request failed ({exc.status_code}) for model '{model}': {exc.message}",
                status_code=exc.status_code,
            ) from exc
        except openai.APIConnectionError as exc:
            raise ModelCallError(
                f"OpenAI request failed (no-status) for model '{model}': {exc}"
            ) from exc
        return _response_text_or_raise(response, step=step)
