"""JSON and CSV report files for one or more benchmark results."""

from __future__ import annotations

import csv
from datetime import datetime
import json
from pathlib import Path
from typing import Any, Sequence

from ait.schemas import ReportData

REPORT_TYPE = "ait_benchmark_report"

CSV_COLUMNS = (
    ("model", "Model"),
    ("protocol", "Protocol"),
    ("timestamp", "Timestamp"),
    ("base_url", "Base URL"),
    ("total_requests", "Total requests"),
    ("concurrency", "Concurrency"),
    ("is_stream", "Stream"),
    ("is_thinking", "Thinking"),
    ("total_time_ms", "Total time (ms)"),
    ("avg_total_time_ms", "Avg total time (ms)"),
    ("min_total_time_ms", "Min total time (ms)"),
    ("max_total_time_ms", "Max total time (ms)"),
    ("target_ip", "Target IP"),
    ("avg_dns_time_ms", "Avg DNS (ms)"),
    ("min_dns_time_ms", "Min DNS (ms)"),
    ("max_dns_time_ms", "Max DNS (ms)"),
    ("avg_connect_time_ms", "Avg connect (ms)"),
    ("min_connect_time_ms", "Min connect (ms)"),
    ("max_connect_time_ms", "Max connect (ms)"),
    ("avg_tls_handshake_time_ms", "Avg TLS handshake (ms)"),
    ("min_tls_handshake_time_ms", "Min TLS handshake (ms)"),
    ("max_tls_handshake_time_ms", "Max TLS handshake (ms)"),
    ("avg_ttft_ms", "Avg TTFT (ms)"),
    ("min_ttft_ms", "Min TTFT (ms)"),
    ("max_ttft_ms", "Max TTFT (ms)"),
    ("avg_tpot_ms", "Avg TPOT (ms)"),
    ("min_tpot_ms", "Min TPOT (ms)"),
    ("max_tpot_ms", "Max TPOT (ms)"),
    ("avg_input_token_count", "Avg input tokens"),
    ("min_input_token_count", "Min input tokens"),
    ("max_input_token_count", "Max input tokens"),
    ("avg_output_token_count", "Avg output tokens"),
    ("min_output_token_count", "Min output tokens"),
    ("max_output_token_count", "Max output tokens"),
    ("avg_thinking_token_count", "Avg thinking tokens"),
    ("min_thinking_token_count", "Min thinking tokens"),
    ("max_thinking_token_count", "Max thinking tokens"),
    ("avg_tps", "Avg TPS"),
    ("min_tps", "Min TPS"),
    ("max_tps", "Max TPS"),
    ("success_rate", "Success rate (%)"),
    ("error_rate", "Error rate (%)"),
)


def _report_path(directory: str | Path, suffix: str, now: datetime) -> Path:
    timestamp = now.strftime("%y-%m-%d-%H-%M-%S")
    return Path(directory) / f"ait-report-{timestamp}.{suffix}"


def _format_cell(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def render_json(
    reports: Sequence[ReportData],
    directory: str | Path = ".",
    now: datetime | None = None,
) -> Path:
    """Write all results into one JSON report and return its path."""
    now = now or datetime.now()
    path = _report_path(directory, "json", now)
    payload = {
        "report_type": REPORT_TYPE,
        "timestamp": now.isoformat(timespec="seconds"),
        "total_models": len(reports),
        "models": [report.to_report_dict() for report in reports],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def render_csv(
    reports: Sequence[ReportData],
    directory: str | Path = ".",
    now: datetime | None = None,
) -> Path:
    """Write one CSV row per result and return the file path."""
    path = _report_path(directory, "csv", now or datetime.now())
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow([header for _, header in CSV_COLUMNS])
        for report in reports:
            row = report.to_report_dict()
            writer.writerow([_format_cell(row[name]) for name, _ in CSV_COLUMNS])
    return path
