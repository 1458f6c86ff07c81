"""Ollama chat client with JSON-schema constrained output."""

import asyncio
import json
import logging
import re
from typing import Any

import httpx

from ai_tagging.config import Settings
from ai_tagging.core.exceptions import LLMError

logger = logging.getLogger(__name__)


def parse_json_response(raw_text: str) -> Any | None:
    """Parse JSON from LLM response with repair attempts.

    Tries three strategies in order:
    1. Strict JSON parse
    2. Strip markdown code fences and parse
    3. Parse the span from the first ``{`` to the last ``}``
    """
    try:
        return json.loads(raw_text)
    except json.JSONDecodeError:
        pass

    cleaned = re.sub(r"^```(?:json)?\s*", "", raw_text.strip(), flags=re.MULTILINE)
    cleaned = re.sub(r"\s*```$", "", cleaned.strip(), flags=re.MULTILINE)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError:
            pass

    logger.error("Failed to parse LLM response as JSON after all repair attempts")
    return None


class OllamaStructuredClient:
    """LLMClient implementation over Ollama ``/api/chat``.

    Connection errors and timeouts are retried with exponential backoff.
    HTTP status errors are not retried. Transport failures raise LLMError
    carrying the upstream cause; an empty message returns ``(None, usage)``.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.ollama_url = settings.ollama_base_url.rstrip("/")
        self.model = settings.tagging_llm_model
        self.timeout = settings.tagging_llm_timeout_seconds
        self.max_retries = settings.tagging_llm_max_retries
        self.temperature = settings.tagging_llm_temperature
        self._transport = transport

    async def generate_structured(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        schema: dict[str, Any],
    ) -> tuple[Any, dict[str, Any]]:
        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "format": schema,
            "stream": False,
            "options": {"temperature": self.temperature},
        }

        body = await self._post_chat(payload)
        usage = {
            "model": body.get("model", self.model),
            "prompt_tokens": body.get("prompt_eval_count"),
            "completion_tokens": body.get("eval_count"),
            "total_duration_ms": (
                round(body["total_duration"] / 1_000_000) if body.get("total_duration") else None
            ),
        }
        content = (body.get("message") or {}).get("content", "").strip()
        if not content:
            logger.warning("LLM returned an empty message")
            return None, usage
        return parse_json_response(content), usage

    async def _post_chat(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST /api/chat with timeout and exponential backoff retry.

        Raises:
            LLMError: Transport failure after retries, HTTP error status,
                or a non-JSON body.
        """
        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self._transport
                ) as client:
                    response = await client.post(f"{self.ollama_url}/api/chat", json=payload)
                    response.raise_for_status()
                    body = response.json()
                if not isinstance(body, dict):
                    raise LLMError("Ollama returned a JSON body that is not an object")
                return body
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < self.max_retries:
                    backoff = 2**attempt
                    logger.warning(
                        "LLM call attempt %d failed: %s, retrying in %ds",
                        attempt + 1,
                        e,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                logger.error("LLM call failed after %d attempts: %s", self.max_retries + 1, e)
                raise LLMError(
                    f"Ollama unreachable after {self.max_retries + 1} attempts: "
                    f"{type(e).__name__}: {e}"
                ) from e
            except httpx.HTTPStatusError as e:
                logger.error("LLM HTTP error (no retry): %s", e)
                raise LLMError(
                    f"Ollama returned status code {e.response.status_code}: "
                    f"{e.response.text[:200]}"
                ) from e
            except ValueError as e:
                logger.error("LLM returned a non-JSON body: %s", e)
                raise LLMError("Ollama returned a non-JSON body") from e
        raise LLMError("Ollama call made no attempts")
