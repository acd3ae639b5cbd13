"""Tests for JSON and CSV report files."""

import csv
from datetime import datetime
import json

from ait.report import CSV_COLUMNS, REPORT_TYPE, render_csv, render_json
from ait.schemas import ReportData

NOW = datetime(2025, 1, 31, 12, 30, 45)


def _reports():
    return [
        ReportData(
            model="model-a",
            protocol="openai",
            is_stream=True,
            total_requests=10,
            avg_ttft_ms=123.456,
            success_rate=90.0,
            error_rate=10.0,
        ),
        ReportData(model="model-b", protocol="anthropic", is_stream=False, avg_ttft_ms=0.0),
    ]


class TestRenderJson:
    def test_writes_all_models(self, tmp_path):
        path = render_json(_reports(), tmp_path, now=NOW)

        assert path.name == "ait-report-25-01-31-12-30-45.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["report_type"] == REPORT_TYPE
        assert data["total_models"] == 2
        assert data["timestamp"] == "2025-01-31T12:30:45"
        assert [m["model"] for m in data["models"]] == ["model-a", "model-b"]
        assert data["models"][0]["avg_ttft_ms"] == 123.456
        assert data["models"][1]["avg_ttft_ms"] == "-"

    def test_creates_directory(self, tmp_path):
        path = render_json(_reports(), tmp_path / "reports" / "nested", now=NOW)
        assert path.exists()


class TestRenderCsv:
    def test_one_row_per_model(self, tmp_path):
        path = render_csv(_reports(), tmp_path, now=NOW)

        assert path.name == "ait-report-25-01-31-12-30-45.csv"
        with path.open(encoding="utf-8", newline="") as f:
            rows = list(csv.reader(f))

        assert rows[0] == [header for _, header in CSV_COLUMNS]
        assert len(rows) == 3
        first = dict(zip(rows[0], rows[1]))
        assert first["Model"] == "model-a"
        assert first["Stream"] == "true"
        assert first["Avg TTFT (ms)"] == "123.46"
        assert first["Success rate (%)"] == "90.00"
        second = dict(zip(rows[0], rows[2]))
        assert second["Avg TTFT (ms)"] == "-"
        assert second["Stream"] == "false"
