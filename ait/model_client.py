"""Instrumented async client contract shared by the protocol strategies.

A ``ModelClient`` performs exactly one HTTP exchange per ``request`` call and
returns a ``ResponseMetrics``. Failures raise ``ModelClientError`` carrying
whatever metrics were captured before the failure.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator

import httpcore
import httpx

from ait.config import BenchmarkConfig, ConfigurationError
from ait.metrics import ResponseMetrics
from ait.transport import (
    Resolver,
    TimedNetworkBackend,
    TimedTransport,
    TransportTimer,
    active_timer,
    elapsed_ms,
)


class ModelClientError(RuntimeError):
    """Raised when an exchange did not yield a usable model reply."""

    def __init__(
        self,
        message: str,
        metrics: ResponseMetrics | None = None,
        status_code: int | None = None,
        response_text: str | None = None,
    ) -> None:
        super().__init__(message)
        self.metrics = metrics
        self.status_code = status_code
        self.response_text = response_text


def safe_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def as_dict(value: Any) -> dict[str, Any]:
    """Return ``value`` if it is a JSON object, else an empty dict."""
    return value if isinstance(value, dict) else {}


class ModelClient:
    """Base class holding the exchange skeleton for every wire protocol.

    Subclasses provide the endpoint, headers, payload and the two decoders
    (``_consume_stream`` and ``_read_body``).
    """

    protocol_name = ""

    def __init__(
        self,
        config: BenchmarkConfig,
        http_client: httpx.AsyncClient | None = None,
        resolver: Resolver | None = None,
        request_logger: logging.Logger | None = None,
        run_id: str = "",
        network_backend: httpcore.AsyncNetworkBackend | None = None,
    ) -> None:
        self._config = config
        self._logger = logging.getLogger(self.__class__.__name__)
        self._external_client = http_client
        self._client = http_client
        self._network_backend = TimedNetworkBackend(resolver, network_backend)
        self._request_logger = request_logger
        self._run_id = run_id

    @property
    def protocol(self) -> str:
        return self.protocol_name

    @property
    def model(self) -> str:
        return self._config.model

    def set_logger(self, request_logger: logging.Logger | None, run_id: str | None = None) -> None:
        """Attach the verbose request logger; ``None`` turns it off."""
        self._request_logger = request_logger
        if run_id is not None:
            self._run_id = run_id

    async def __aenter__(self) -> "ModelClient":
        if self._client is None:
            self._client = self._build_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if owned by this instance."""
        if self._client is not None and self._external_client is None:
            await self._client.aclose()
        self._client = None

    def _build_client(self) -> httpx.AsyncClient:
        """Build an httpx client that opens a fresh connection per request."""
        # Reused connections would skip the DNS, connect and TLS phases.
        limits = httpx.Limits(max_keepalive_connections=0)
        timeout = httpx.Timeout(self._config.timeout_s)
        transport = TimedTransport(self._network_backend, limits=limits)
        return httpx.AsyncClient(transport=transport, timeout=timeout)

    # Strategy hooks

    def _endpoint(self) -> str:
        raise NotImplementedError

    def _headers(self) -> dict[str, str]:
        raise NotImplementedError

    def _build_payload(self, prompt: str, stream: bool) -> dict[str, Any]:
        raise NotImplementedError

    async def _consume_stream(
        self, response: httpx.Response, metrics: ResponseMetrics, started: float
    ) -> None:
        raise NotImplementedError

    def _read_body(self, data: dict[str, Any], metrics: ResponseMetrics) -> None:
        raise NotImplementedError

    def _masked_headers(self) -> dict[str, str]:
        raise NotImplementedError

    # Exchange

    async def request(self, prompt: str, stream: bool) -> ResponseMetrics:
        """Send one prompt and return the captured metrics.

        Raises ModelClientError with partial metrics when the transport,
        the HTTP status, the payload or the reply content is unusable.
        """
        if self._client is None:
            self._client = self._build_client()

        metrics = ResponseMetrics()
        timer = TransportTimer()
        self._log_event(
            "INFO",
            "Test Started",
            {
                "prompt": prompt,
                "config": {
                    "stream": stream,
                    "protocol": self.protocol,
                    "base_url": self._config.base_url,
                },
            },
        )

        started = time.perf_counter()
        try:
            await asyncio.wait_for(
                self._exchange(prompt, stream, metrics, timer, started),
                timeout=self._config.timeout_s,
            )
        except ModelClientError as exc:
            raise self._fail(metrics, timer, started, str(exc), exc) from exc
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            message = f"Request timed out after {self._config.timeout_s:g}s"
            raise self._fail(metrics, timer, started, message, exc) from exc
        except httpx.HTTPError as exc:
            raise self._fail(metrics, timer, started, f"Network error: {exc}", exc) from exc
        except OSError as exc:
            message = f"DNS resolution failed: {exc}"
            raise self._fail(metrics, timer, started, message, exc) from exc
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            message = f"Response decode error: {exc}"
            raise self._fail(metrics, timer, started, message, exc) from exc

        metrics.total_time_ms = elapsed_ms(started)
        timer.apply(metrics)
        self._log_event(
            "INFO",
            "Test Completed",
            {
                "total_time_ms": metrics.total_time_ms,
                "ttft_ms": metrics.ttft_ms,
                "prompt_tokens": metrics.prompt_tokens,
                "completion_tokens": metrics.completion_tokens,
                "thinking_tokens": metrics.thinking_tokens,
            },
        )
        return metrics

    def _fail(
        self,
        metrics: ResponseMetrics,
        timer: TransportTimer,
        started: float,
        message: str,
        cause: BaseException,
    ) -> ModelClientError:
        """Finalize partial metrics and wrap them into a ModelClientError."""
        metrics.total_time_ms = elapsed_ms(started)
        timer.apply(metrics)
        metrics.error_message = message
        # A failed reply produced no usable output.
        metrics.completion_tokens = 0
        metrics.thinking_tokens = 0
        self._logger.debug("%s request failed: %s", self.protocol, message)
        self._log_event("ERROR", message, {"error": repr(cause)})
        if isinstance(cause, ModelClientError):
            return ModelClientError(
                message,
                metrics=metrics,
                status_code=cause.status_code,
                response_text=cause.response_text,
            )
        return ModelClientError(message, metrics=metrics)

    async def _exchange(
        self,
        prompt: str,
        stream: bool,
        metrics: ResponseMetrics,
        timer: TransportTimer,
        started: float,
    ) -> None:
        url = httpx.URL(self._endpoint())
        token = active_timer.set(timer)
        try:
            await self._send(url, prompt, stream, metrics, timer, started)
        finally:
            active_timer.reset(token)

    async def _send(
        self,
        url: httpx.URL,
        prompt: str,
        stream: bool,
        metrics: ResponseMetrics,
        timer: TransportTimer,
        started: float,
    ) -> None:
        payload = self._build_payload(prompt, stream)
        self._log_event(
            "REQUEST",
            "HTTP Request",
            {
                "method": "POST",
                "url": str(url),
                "headers": self._masked_headers(),
                "body": payload,
            },
        )

        request = self._client.build_request(
            "POST",
            url,
            json=payload,
            headers=self._headers(),
            extensions={"trace": timer.trace},
        )
        response = await self._client.send(request, stream=True)
        try:
            if response.status_code != 200:
                body = (await response.aread()).decode("utf-8", errors="replace")
                self._log_event(
                    "RESPONSE",
                    "HTTP Response",
                    {
                        "status_code": response.status_code,
                        "headers": dict(response.headers),
                        "body": body,
                        "error": f"HTTP {response.status_code} Error",
                    },
                )
                raise ModelClientError(
                    self._error_message(response.status_code, body),
                    status_code=response.status_code,
                    response_text=body,
                )

            if stream:
                await self._consume_stream(response, metrics, started)
                return

            raw = await response.aread()
            body = raw.decode("utf-8", errors="replace")
            self._log_event(
                "RESPONSE",
                "HTTP Response",
                {"status_code": response.status_code, "body": body},
            )
            if not raw.strip():
                raise ModelClientError("Empty response body")
            try:
                data = json.loads(body)
            except ValueError as exc:
                raise ModelClientError(f"JSON parsing error: {exc}") from exc
            if not isinstance(data, dict):
                raise ModelClientError("JSON parsing error: expected an object")
            self._read_body(data, metrics)
        finally:
            await response.aclose()

    @staticmethod
    def _error_message(status_code: int, body: str) -> str:
        """Prefer the provider's ``[type] message`` over a bare status."""
        try:
            data = json.loads(body)
        except ValueError:
            return f"HTTP {status_code}"
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return f"[{error.get('type') or 'error'}] {error['message']}"
        return f"HTTP {status_code}"

    async def _iter_sse_json(
        self, response: httpx.Response, chunks: list[str]
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield decoded ``data:`` payloads, skipping lines that are not JSON.

        Raw payloads are collected into ``chunks`` for the request log. The
        OpenAI ``[DONE]`` sentinel ends iteration.
        """
        async for line in response.aiter_lines():
            if not line.startswith("data:"):
                continue
            data = line[5:].strip()
            if not data:
                continue
            if data == "[DONE]":
                return
            if self._request_logger is not None:
                chunks.append(data)
            try:
                chunk = json.loads(data)
            except ValueError:
                continue
            if isinstance(chunk, dict):
                yield chunk

    @staticmethod
    def _mark_first_token(metrics: ResponseMetrics, started: float) -> None:
        if metrics.ttft_ms == 0:
            metrics.ttft_ms = elapsed_ms(started)

    def _log_event(self, event: str, message: str, details: Any = None) -> None:
        if self._request_logger is None:
            return
        self._request_logger.info(
            message,
            extra={
                "event": event,
                "model": self.model,
                "run_id": self._run_id or None,
                "details": details,
            },
        )


def _client_registry() -> dict[str, type[ModelClient]]:
    from ait.anthropic_client import AnthropicClient
    from ait.openai_client import OpenAIClient

    return {
        OpenAIClient.protocol_name: OpenAIClient,
        AnthropicClient.protocol_name: AnthropicClient,
    }


def create_client(
    config: BenchmarkConfig,
    request_logger: logging.Logger | None = None,
    run_id: str = "",
    **kwargs: Any,
) -> ModelClient:
    """Instantiate the protocol strategy named by ``config.protocol``."""
    client_cls = _client_registry().get(config.protocol)
    if client_cls is None:
        raise ConfigurationError(f"Unsupported protocol {config.protocol!r}")
    return client_cls(config, request_logger=request_logger, run_id=run_id, **kwargs)
