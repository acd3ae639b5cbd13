"""OpenAI-style chat-completions strategy."""

from __future__ import annotations

from typing import Any

import httpx

from ait.metrics import ResponseMetrics
from ait.model_client import ModelClient, ModelClientError, as_dict, safe_int


def _first_choice(data: dict[str, Any]) -> dict[str, Any]:
    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


class OpenAIClient(ModelClient):
    """Client for ``POST {base_url}/chat/completions``."""

    protocol_name = "openai"

    def _endpoint(self) -> str:
        return f"{self._config.base_url.rstrip('/')}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._config.api_key}",
        }

    def _masked_headers(self) -> dict[str, str]:
        return {**self._headers(), "Authorization": "Bearer ***"}

    def _build_payload(self, prompt: str, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._config.model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": stream,
        }
        if stream:
            payload["stream_options"] = {"include_usage": True}
        return payload

    def _apply_usage(self, usage: Any, metrics: ResponseMetrics) -> bool:
        """Copy a usage block into the metrics; False when there is none."""
        if not isinstance(usage, dict):
            return False
        metrics.prompt_tokens = safe_int(usage.get("prompt_tokens"))
        metrics.completion_tokens = safe_int(usage.get("completion_tokens"))
        if self._config.thinking:
            details = usage.get("completion_tokens_details")
            if isinstance(details, dict):
                metrics.thinking_tokens = safe_int(details.get("reasoning_tokens"))
        return True

    async def _consume_stream(
        self, response: httpx.Response, metrics: ResponseMetrics, started: float
    ) -> None:
        chunks: list[str] = []
        content_deltas = 0
        saw_usage = False

        async for chunk in self._iter_sse_json(response, chunks):
            error = chunk.get("error")
            if isinstance(error, dict):
                raise ModelClientError(
                    f"[{error.get('type') or 'error'}] {error.get('message', 'stream error')}"
                )

            delta = as_dict(_first_choice(chunk).get("delta"))
            if delta.get("content") or delta.get("reasoning_content"):
                self._mark_first_token(metrics, started)
                content_deltas += 1

            if self._apply_usage(chunk.get("usage"), metrics):
                saw_usage = True

        self._log_event(
            "RESPONSE",
            "HTTP Response",
            {"status_code": response.status_code, "stream_chunks": chunks},
        )

        if content_deltas == 0:
            raise ModelClientError("Empty response: stream contained no content")
        if not saw_usage or metrics.completion_tokens == 0:
            # Server ignored stream_options; fall back to counting deltas.
            metrics.completion_tokens = content_deltas
        self._logger.debug("Stream finished with %d content chunks", content_deltas)

    def _read_body(self, data: dict[str, Any], metrics: ResponseMetrics) -> None:
        message = _first_choice(data).get("message")
        if not isinstance(message, dict):
            raise ModelClientError("Unexpected response shape: missing choices[0].message")

        self._apply_usage(data.get("usage"), metrics)
        content = message.get("content") or message.get("reasoning_content") or ""
        if not content and metrics.completion_tokens == 0:
            raise ModelClientError("Empty response: no content returned")
