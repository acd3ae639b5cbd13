"""Per-request outcomes and live run statistics."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import time


@dataclass
class ResponseMetrics:
    """Timings and token counts captured for one request attempt.

    All durations are milliseconds. ``ttft_ms`` stays 0 for non-streaming
    requests and for failures before the first token. An empty
    ``error_message`` means the exchange succeeded.
    """

    total_time_ms: float = 0.0
    ttft_ms: float = 0.0
    dns_time_ms: float = 0.0
    connect_time_ms: float = 0.0
    tls_handshake_time_ms: float = 0.0
    target_ip: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    thinking_tokens: int = 0
    error_message: str = ""

    @property
    def succeeded(self) -> bool:
        return not self.error_message

    @property
    def has_content(self) -> bool:
        return self.completion_tokens > 0

    @property
    def has_network_timing(self) -> bool:
        return any(
            value > 0
            for value in (
                self.total_time_ms,
                self.dns_time_ms,
                self.connect_time_ms,
                self.tls_handshake_time_ms,
            )
        )


@dataclass
class StatsData:
    """Running statistics of one benchmark run.

    Index ``i`` of every per-request list refers to the same request. Only the
    runner's collector mutates an instance; observers get ``snapshot()``.
    """

    completed_count: int = 0
    failed_count: int = 0
    ttfts_ms: list[float] = field(default_factory=list)
    total_times_ms: list[float] = field(default_factory=list)
    dns_times_ms: list[float] = field(default_factory=list)
    connect_times_ms: list[float] = field(default_factory=list)
    tls_handshake_times_ms: list[float] = field(default_factory=list)
    input_token_counts: list[int] = field(default_factory=list)
    output_token_counts: list[int] = field(default_factory=list)
    thinking_token_counts: list[int] = field(default_factory=list)
    error_messages: list[str] = field(default_factory=list)
    start_time: float = field(default_factory=time.time)
    elapsed_time_ms: float = 0.0

    def record(self, metrics: ResponseMetrics | None, error: str | None) -> None:
        """Fold one finished request into the running statistics."""
        if error:
            self.failed_count += 1
            self.error_messages.append(error)
        elif metrics is None:
            self.failed_count += 1
        else:
            self.completed_count += 1

        if metrics is None:
            return
        self.ttfts_ms.append(metrics.ttft_ms)
        self.total_times_ms.append(metrics.total_time_ms)
        self.dns_times_ms.append(metrics.dns_time_ms)
        self.connect_times_ms.append(metrics.connect_time_ms)
        self.tls_handshake_times_ms.append(metrics.tls_handshake_time_ms)
        self.input_token_counts.append(metrics.prompt_tokens)
        self.output_token_counts.append(metrics.completion_tokens)
        self.thinking_token_counts.append(metrics.thinking_tokens)

    def snapshot(self) -> "StatsData":
        """Return an independent copy safe to hand to observers."""
        return replace(
            self,
            ttfts_ms=list(self.ttfts_ms),
            total_times_ms=list(self.total_times_ms),
            dns_times_ms=list(self.dns_times_ms),
            connect_times_ms=list(self.connect_times_ms),
            tls_handshake_times_ms=list(self.tls_handshake_times_ms),
            input_token_counts=list(self.input_token_counts),
            output_token_counts=list(self.output_token_counts),
            thinking_token_counts=list(self.thinking_token_counts),
            error_messages=list(self.error_messages),
        )

    @property
    def finished_count(self) -> int:
        return self.completed_count + self.failed_count
