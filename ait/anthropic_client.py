"""Anthropic-style messages strategy."""

from __future__ import annotations

from typing import Any

import httpx

from ait.metrics import ResponseMetrics
from ait.model_client import ModelClient, ModelClientError, as_dict, safe_int

ANTHROPIC_VERSION = "2023-06-01"

_CONTENT_DELTA_KEYS = ("text", "thinking", "partial_json")


class AnthropicClient(ModelClient):
    """Client for ``POST {base_url}/v1/messages``."""

    protocol_name = "anthropic"

    def _endpoint(self) -> str:
        return f"{self._config.base_url.rstrip('/')}/v1/messages"

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _masked_headers(self) -> dict[str, str]:
        return {**self._headers(), "x-api-key": "***"}

    def _build_payload(self, prompt: str, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._config.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self._config.max_tokens,
            "stream": stream,
        }
        if self._config.thinking:
            payload["thinking"] = {
                "type": "enabled",
                "budget_tokens": self._config.thinking_budget,
            }
        return payload

    async def _consume_stream(
        self, response: httpx.Response, metrics: ResponseMetrics, started: float
    ) -> None:
        chunks: list[str] = []
        content_deltas = 0
        thinking_deltas = 0

        async for chunk in self._iter_sse_json(response, chunks):
            event_type = chunk.get("type")

            if event_type == "error":
                error = as_dict(chunk.get("error"))
                raise ModelClientError(
                    f"[{error.get('type') or 'error'}] {error.get('message', 'stream error')}"
                )

            if event_type == "message_start":
                usage = as_dict(as_dict(chunk.get("message")).get("usage"))
                metrics.prompt_tokens = safe_int(usage.get("input_tokens"))
                metrics.completion_tokens = safe_int(usage.get("output_tokens"))

            elif event_type == "content_block_delta":
                delta = as_dict(chunk.get("delta"))
                if any(delta.get(key) for key in _CONTENT_DELTA_KEYS):
                    self._mark_first_token(metrics, started)
                    content_deltas += 1
                if delta.get("thinking"):
                    thinking_deltas += 1

            elif event_type == "message_delta":
                usage = as_dict(chunk.get("usage"))
                if "output_tokens" in usage:
                    metrics.completion_tokens = safe_int(usage.get("output_tokens"))
                if usage.get("input_tokens"):
                    metrics.prompt_tokens = safe_int(usage.get("input_tokens"))

            elif event_type == "message_stop":
                break

        self._log_event(
            "RESPONSE",
            "HTTP Response",
            {"status_code": response.status_code, "stream_chunks": chunks},
        )

        if content_deltas == 0:
            raise ModelClientError("Empty response: stream contained no content")
        if metrics.completion_tokens == 0:
            metrics.completion_tokens = content_deltas
        if self._config.thinking:
            # The messages API does not break thinking out of output_tokens.
            metrics.thinking_tokens = thinking_deltas

    def _read_body(self, data: dict[str, Any], metrics: ResponseMetrics) -> None:
        if data.get("type") == "error":
            error = as_dict(data.get("error"))
            raise ModelClientError(
                f"[{error.get('type') or 'error'}] {error.get('message', 'unknown error')}"
            )

        content = data.get("content")
        if not isinstance(content, list):
            raise ModelClientError("Unexpected response shape: missing content")

        usage = as_dict(data.get("usage"))
        metrics.prompt_tokens = safe_int(usage.get("input_tokens"))
        metrics.completion_tokens = safe_int(usage.get("output_tokens"))

        has_text = any(
            isinstance(block, dict) and (block.get("text") or block.get("thinking"))
            for block in content
        )
        if not has_text and metrics.completion_tokens == 0:
            raise ModelClientError("Empty response: no content returned")
