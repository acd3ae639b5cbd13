"""Benchmark result schema shared by the CLI summary and report renderers."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

NOT_APPLICABLE = "-"

# Only meaningful when tokens arrive incrementally.
STREAM_ONLY_FIELDS = (
    "avg_ttft_ms",
    "min_ttft_ms",
    "max_ttft_ms",
    "avg_tpot_ms",
    "min_tpot_ms",
    "max_tpot_ms",
)


class ReportData(BaseModel):
    """Aggregated result of one benchmark run against one model."""

    model_config = ConfigDict(frozen=True)

    model: str = ""
    protocol: str = ""
    base_url: str = ""
    timestamp: str = ""
    total_requests: int = 0
    concurrency: int = 0
    is_stream: bool = False
    is_thinking: bool = False
    total_time_ms: float = Field(0.0, description="Wall-clock time of the whole run")

    avg_total_time_ms: float = 0.0
    min_total_time_ms: float = 0.0
    max_total_time_ms: float = 0.0

    target_ip: str = ""
    avg_dns_time_ms: float = 0.0
    min_dns_time_ms: float = 0.0
    max_dns_time_ms: float = 0.0
    avg_connect_time_ms: float = 0.0
    min_connect_time_ms: float = 0.0
    max_connect_time_ms: float = 0.0
    avg_tls_handshake_time_ms: float = 0.0
    min_tls_handshake_time_ms: float = 0.0
    max_tls_handshake_time_ms: float = 0.0

    avg_ttft_ms: float = 0.0
    min_ttft_ms: float = 0.0
    max_ttft_ms: float = 0.0
    avg_tpot_ms: float = 0.0
    min_tpot_ms: float = 0.0
    max_tpot_ms: float = 0.0

    avg_input_token_count: float = 0.0
    min_input_token_count: int = 0
    max_input_token_count: int = 0
    avg_output_token_count: float = 0.0
    min_output_token_count: int = 0
    max_output_token_count: int = 0
    avg_thinking_token_count: float = 0.0
    min_thinking_token_count: int = 0
    max_thinking_token_count: int = 0

    avg_tps: float = 0.0
    min_tps: float = 0.0
    max_tps: float = 0.0

    success_rate: float = Field(0.0, description="Percent of configured requests with content")
    error_rate: float = Field(0.0, description="Percent of configured requests without content")

    def to_report_dict(self) -> dict[str, Any]:
        """Dump for report files; TTFT/TPOT become "-" for non-streaming runs."""
        data = self.model_dump()
        if not self.is_stream:
            for name in STREAM_ONLY_FIELDS:
                data[name] = NOT_APPLICABLE
        return data
