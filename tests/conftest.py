"""Shared fixtures for the benchmark test suite."""

from __future__ import annotations

import asyncio
from typing import Callable

import httpcore
import pytest

from ait.config import BenchmarkConfig
from ait.prompt_source import load_prompts

RESOLVED_IP = "10.0.0.7"


class ScriptedStream(httpcore.AsyncNetworkStream):
    """Network stream that replays a canned HTTP/1.1 response."""

    def __init__(self, backend: "ScriptedBackend", address: str, port: int) -> None:
        self._backend = backend
        self._address = address
        self._port = port
        self._chunks = [backend.response]

    async def read(self, max_bytes: int, timeout: float | None = None) -> bytes:
        return self._chunks.pop(0) if self._chunks else b""

    async def write(self, buffer: bytes, timeout: float | None = None) -> None:
        self._backend.written.append(buffer)

    async def aclose(self) -> None:
        pass

    async def start_tls(self, ssl_context, server_hostname=None, timeout=None):
        self._backend.server_hostnames.append(server_hostname)
        await asyncio.sleep(self._backend.tls_delay)
        return self

    def get_extra_info(self, info: str):
        if info == "server_addr":
            return (self._address, self._port)
        return None


class ScriptedBackend(httpcore.AsyncNetworkBackend):
    """In-memory network backend with measurable connect and TLS phases."""

    def __init__(
        self,
        response: bytes = b"",
        connect_delay: float = 0.005,
        tls_delay: float = 0.005,
        connect_error: Exception | None = None,
    ) -> None:
        self.response = response
        self.connect_delay = connect_delay
        self.tls_delay = tls_delay
        self.connect_error = connect_error
        self.connected_hosts: list[str] = []
        self.server_hostnames: list[str] = []
        self.written: list[bytes] = []

    @classmethod
    def replying(
        cls,
        body: bytes,
        status: int = 200,
        content_type: str = "application/json",
        **kwargs,
    ) -> "ScriptedBackend":
        head = (
            f"HTTP/1.1 {status} {'OK' if status == 200 else 'Error'}\r\n"
            f"Content-Type: {content_type}\r\n"
            f"Content-Length: {len(body)}\r\n"
            "Connection: close\r\n\r\n"
        )
        return cls(head.encode() + body, **kwargs)

    async def connect_tcp(
        self, host, port, timeout=None, local_address=None, socket_options=None
    ) -> ScriptedStream:
        self.connected_hosts.append(host)
        await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error
        return ScriptedStream(self, host, port)

    async def connect_unix_socket(self, path, timeout=None, socket_options=None):
        raise NotImplementedError

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class IndexedPromptSource:
    """Prompt source whose prompts encode their own index."""

    def __init__(self, size: int) -> None:
        self.size = size

    def get_content_by_index(self, index: int) -> str:
        if index < 0 or index >= self.size:
            return self.get_random_content()
        return f"prompt-{index}"

    def get_random_content(self) -> str:
        return "prompt-random"

    def count(self) -> int:
        return self.size


@pytest.fixture
def make_config() -> Callable[..., BenchmarkConfig]:
    """Build a valid BenchmarkConfig with per-test overrides."""

    def _make(**overrides) -> BenchmarkConfig:
        values = dict(
            protocol="openai",
            base_url="http://llm.test/v1",
            api_key="sk-test-key",
            model="test-model",
            prompt_source=load_prompts("Hello"),
            concurrency=2,
            count=4,
            stream=False,
            timeout_s=5.0,
        )
        values.update(overrides)
        return BenchmarkConfig(**values)

    return _make


@pytest.fixture
def indexed_prompts() -> Callable[[int], IndexedPromptSource]:
    return IndexedPromptSource


@pytest.fixture
def fake_resolver():
    """Resolver that answers instantly with a fixed address."""

    async def _resolve(host: str, port: int) -> str:
        return RESOLVED_IP

    return _resolve


ENV_KEYS = (
    "AIT_PROTOCOL",
    "AIT_MODEL",
    "AIT_CONCURRENCY",
    "AIT_COUNT",
    "AIT_TIMEOUT_S",
    "AIT_MAX_TOKENS",
    "AIT_STREAM",
    "LOG_LEVEL",
    "OPENAI_BASE_URL",
    "OPENAI_API_KEY",
    "ANTHROPIC_BASE_URL",
    "ANTHROPIC_API_KEY",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every environment variable the benchmark reads."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def scripted_backend() -> type[ScriptedBackend]:
    return ScriptedBackend
