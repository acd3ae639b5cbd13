"""Connection-level timing for a single HTTP exchange.

``TimedNetworkBackend`` resolves the host itself and connects to the address
it resolved, so the DNS time it reports belongs to the lookup the connection
actually used and the TCP connect time contains no second lookup. TLS and the
``Host`` header still use the original host name. The TLS handshake is timed
from httpcore's ``connection.start_tls`` trace events.

The backend is shared by every request of a client; it finds the timer of the
request being connected through the ``active_timer`` context variable.
"""

from __future__ import annotations

import asyncio
from contextvars import ContextVar
import ipaddress
import socket
import time
from typing import Any, Awaitable, Callable, Iterable

import httpcore
import httpx

from ait.metrics import ResponseMetrics

Resolver = Callable[[str, int], Awaitable[str]]

_TLS_EVENT = "connection.start_tls"


async def system_resolver(host: str, port: int) -> str:
    """Resolve a host name to the first address the OS returns."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    if not infos:
        raise OSError(f"No addresses found for {host}")
    return infos[0][4][0]


def elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


class TransportTimer:
    """DNS, connect and TLS timings collected for one request.

    A phase that never completes keeps a zero duration.
    """

    def __init__(self) -> None:
        self.dns_time_ms = 0.0
        self.connect_time_ms = 0.0
        self.tls_handshake_time_ms = 0.0
        self.resolved_ip = ""
        self.connected_ip = ""
        self._tls_started: float | None = None

    async def trace(self, event_name: str, info: dict[str, Any]) -> None:
        """httpcore ``trace`` extension; only the TLS phase is read here."""
        phase, _, stage = event_name.rpartition(".")
        if phase != _TLS_EVENT:
            return
        if stage == "started":
            self._tls_started = time.perf_counter()
        elif stage == "complete" and self._tls_started is not None:
            self.tls_handshake_time_ms = elapsed_ms(self._tls_started)
            self._tls_started = None

    def apply(self, metrics: ResponseMetrics) -> None:
        metrics.dns_time_ms = self.dns_time_ms
        metrics.connect_time_ms = self.connect_time_ms
        metrics.tls_handshake_time_ms = self.tls_handshake_time_ms
        metrics.target_ip = self.connected_ip or self.resolved_ip


active_timer: ContextVar[TransportTimer | None] = ContextVar("active_timer", default=None)


class TimedNetworkBackend(httpcore.AsyncNetworkBackend):
    """Network backend that times DNS and TCP connect separately."""

    def __init__(
        self,
        resolver: Resolver | None = None,
        backend: httpcore.AsyncNetworkBackend | None = None,
    ) -> None:
        self._resolver = resolver or system_resolver
        self._backend = backend or httpcore.AnyIOBackend()

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: float | None = None,
        local_address: str | None = None,
        socket_options: Iterable[Any] | None = None,
    ) -> httpcore.AsyncNetworkStream:
        timer = active_timer.get()

        address = host
        if not is_ip_literal(host):
            started = time.perf_counter()
            address = await self._resolver(host, port)
            if timer is not None:
                timer.dns_time_ms = elapsed_ms(started)
                timer.resolved_ip = address

        started = time.perf_counter()
        stream = await self._backend.connect_tcp(
            address,
            port,
            timeout=timeout,
            local_address=local_address,
            socket_options=socket_options,
        )
        if timer is not None:
            timer.connect_time_ms = elapsed_ms(started)
            server_addr = stream.get_extra_info("server_addr")
            if server_addr:
                timer.connected_ip = str(server_addr[0])
        return stream

    async def connect_unix_socket(
        self,
        path: str,
        timeout: float | None = None,
        socket_options: Iterable[Any] | None = None,
    ) -> httpcore.AsyncNetworkStream:
        return await self._backend.connect_unix_socket(
            path, timeout=timeout, socket_options=socket_options
        )

    async def sleep(self, seconds: float) -> None:
        await self._backend.sleep(seconds)


class TimedTransport(httpx.AsyncHTTPTransport):
    """httpx transport whose connections are opened by a given network backend."""

    def __init__(
        self,
        network_backend: httpcore.AsyncNetworkBackend,
        limits: httpx.Limits | None = None,
    ) -> None:
        limits = limits or httpx.Limits()
        super().__init__(limits=limits)
        # AsyncHTTPTransport takes no network backend, so its pool is rebuilt.
        self._pool = httpcore.AsyncConnectionPool(
            max_connections=limits.max_connections,
            max_keepalive_connections=limits.max_keepalive_connections,
            keepalive_expiry=limits.keepalive_expiry,
            network_backend=network_backend,
        )
