"""Reduce per-request outcomes into a single ReportData.

Two sample sets are used:

* content-valid outcomes (``completion_tokens > 0``) feed TTFT, TPOT, token
  counts, TPS and the success rate (failed requests carry no tokens);
* network-valid outcomes (any outcome with a non-zero transport timing, failed
  or not) feed total time, DNS, connect and TLS statistics.

Rates are always relative to the configured request count, so missing
outcomes count as errors.
"""

from __future__ import annotations

from datetime import datetime
import statistics
from typing import Iterable, Sequence

from ait.config import BenchmarkConfig
from ait.metrics import ResponseMetrics
from ait.schemas import ReportData


def _summary(values: Iterable[float]) -> tuple[float, float, float]:
    """Return (avg, min, max), or zeros for an empty sample."""
    samples = list(values)
    if not samples:
        return 0.0, 0.0, 0.0
    return statistics.fmean(samples), min(samples), max(samples)


def _int_summary(values: Iterable[int]) -> tuple[float, int, int]:
    samples = list(values)
    if not samples:
        return 0.0, 0, 0
    return statistics.fmean(samples), min(samples), max(samples)


def tokens_per_second(metrics: ResponseMetrics) -> float:
    if metrics.total_time_ms <= 0:
        return 0.0
    return metrics.completion_tokens / (metrics.total_time_ms / 1000)


def time_per_output_token(metrics: ResponseMetrics) -> float | None:
    """TPOT in ms, or None when fewer than two tokens were produced."""
    if metrics.completion_tokens <= 1:
        return None
    return (metrics.total_time_ms - metrics.ttft_ms) / (metrics.completion_tokens - 1)


def calculate_result(
    outcomes: Sequence[ResponseMetrics | None],
    total_time_ms: float,
    config: BenchmarkConfig,
    timestamp: str | None = None,
) -> ReportData:
    """Aggregate one run's outcomes; pure apart from the default timestamp."""
    identity = {
        "model": config.model,
        "protocol": config.protocol,
        "base_url": config.base_url,
        "timestamp": timestamp or datetime.now().isoformat(timespec="seconds"),
    }

    present = [outcome for outcome in outcomes if outcome is not None]
    if not present:
        # No data at all is reported as all zeros, including both rates.
        return ReportData(**identity)

    content_valid = [outcome for outcome in present if outcome.has_content]
    network_valid = [outcome for outcome in present if outcome.has_network_timing]

    total_count = config.count
    success_rate = len(content_valid) / total_count * 100
    error_rate = (total_count - len(content_valid)) / total_count * 100

    avg_total, min_total, max_total = _summary(m.total_time_ms for m in network_valid)
    avg_dns, min_dns, max_dns = _summary(m.dns_time_ms for m in network_valid)
    avg_connect, min_connect, max_connect = _summary(
        m.connect_time_ms for m in network_valid
    )
    avg_tls, min_tls, max_tls = _summary(m.tls_handshake_time_ms for m in network_valid)
    target_ip = next((m.target_ip for m in network_valid if m.target_ip), "")

    avg_ttft, min_ttft, max_ttft = _summary(m.ttft_ms for m in content_valid)
    tpots = [time_per_output_token(m) for m in content_valid]
    avg_tpot, min_tpot, max_tpot = _summary(t for t in tpots if t is not None)
    avg_input, min_input, max_input = _int_summary(m.prompt_tokens for m in content_valid)
    avg_output, min_output, max_output = _int_summary(
        m.completion_tokens for m in content_valid
    )
    avg_thinking, min_thinking, max_thinking = _int_summary(
        m.thinking_tokens for m in content_valid
    )
    avg_tps, min_tps, max_tps = _summary(tokens_per_second(m) for m in content_valid)

    return ReportData(
        **identity,
        total_requests=config.count,
        concurrency=config.concurrency,
        is_stream=config.stream,
        is_thinking=config.thinking,
        total_time_ms=total_time_ms,
        avg_total_time_ms=avg_total,
        min_total_time_ms=min_total,
        max_total_time_ms=max_total,
        target_ip=target_ip,
        avg_dns_time_ms=avg_dns,
        min_dns_time_ms=min_dns,
        max_dns_time_ms=max_dns,
        avg_connect_time_ms=avg_connect,
        min_connect_time_ms=min_connect,
        max_connect_time_ms=max_connect,
        avg_tls_handshake_time_ms=avg_tls,
        min_tls_handshake_time_ms=min_tls,
        max_tls_handshake_time_ms=max_tls,
        avg_ttft_ms=avg_ttft,
        min_ttft_ms=min_ttft,
        max_ttft_ms=max_ttft,
        avg_tpot_ms=avg_tpot,
        min_tpot_ms=min_tpot,
        max_tpot_ms=max_tpot,
        avg_input_token_count=avg_input,
        min_input_token_count=min_input,
        max_input_token_count=max_input,
        avg_output_token_count=avg_output,
        min_output_token_count=min_output,
        max_output_token_count=max_output,
        avg_thinking_token_count=avg_thinking,
        min_thinking_token_count=min_thinking,
        max_thinking_token_count=max_thinking,
        avg_tps=avg_tps,
        min_tps=min_tps,
        max_tps=max_tps,
        success_rate=success_rate,
        error_rate=error_rate,
    )
