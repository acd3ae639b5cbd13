#!/usr/bin/env python3
"""
LLM API Benchmark
=================
Sends a fixed number of prompts to an OpenAI-style or Anthropic-style
endpoint at a given concurrency and prints latency, network and token
throughput statistics per model.

Usage:
    # Credentials from OPENAI_BASE_URL / OPENAI_API_KEY
    ait --model gpt-4o-mini

    # Anthropic protocol, 50 requests at concurrency 10, non-streaming
    ait --protocol anthropic --model claude-sonnet-4 --count 50 --concurrency 10 --no-stream

    # Several models, prompts from files, JSON + CSV reports
    ait --models model-a,model-b --prompt-file "prompts/*.txt" --report
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from ait.config import BenchmarkConfig, ConfigurationError, load_config, provider_env
from ait.logging_config import configure_logging
from ait.metrics import StatsData
from ait.prompt_source import (
    PromptSource,
    load_prompt_by_length,
    load_prompts,
    load_prompts_from_file,
)
from ait.report import render_csv, render_json
from ait.runner import Runner, new_run_id
from ait.schemas import ReportData

DEFAULT_PROMPT = "Hello, please introduce yourself."

logger = logging.getLogger("ait")


# ─── Prompt source ──────────────────────────────────────────────────────────

def build_prompt_source(args: argparse.Namespace) -> PromptSource:
    """Pick the prompt source; generated length wins over files over text."""
    if args.prompt_length:
        return load_prompt_by_length(args.prompt_length)
    if args.prompt_file:
        return load_prompts_from_file(args.prompt_file)
    if args.prompt is None and not sys.stdin.isatty():
        piped = sys.stdin.read().strip()
        if piped:
            return load_prompts(piped)
    return load_prompts(args.prompt or DEFAULT_PROMPT)


def parse_models(args: argparse.Namespace) -> list[str]:
    if args.models:
        return [name.strip() for name in args.models.split(",") if name.strip()]
    return [args.model] if args.model else []


# ─── Terminal output ────────────────────────────────────────────────────────

def print_progress(stats: StatsData, total: int) -> None:
    """Overwrite a single progress line on stderr."""
    done = stats.finished_count
    width = 30
    filled = int(width * done / total) if total else width
    bar = "█" * filled + "░" * (width - filled)
    print(
        f"\r  [{bar}] {done}/{total}  ok={stats.completed_count} "
        f"err={stats.failed_count}  {stats.elapsed_time_ms / 1000:.1f}s",
        end="",
        file=sys.stderr,
        flush=True,
    )
    if done >= total:
        print(file=sys.stderr)


def _ms(value: float, stream_only: bool, is_stream: bool) -> str:
    if stream_only and not is_stream:
        return "-"
    return f"{value:.1f}"


def print_results(results: list[ReportData]) -> None:
    """Print one summary table row per benchmarked model."""
    header = (
        f"{'Model':>24} │ {'Avg (ms)':>10} │ {'TTFT (ms)':>10} │ {'TPOT (ms)':>10} │ "
        f"{'DNS (ms)':>9} │ {'Conn (ms)':>9} │ {'TLS (ms)':>9} │ "
        f"{'In tok':>7} │ {'Out tok':>7} │ {'TPS':>8} │ {'OK %':>6} │ {'Wall (ms)':>10}"
    )
    sep = "─" * len(header)

    print()
    print(f"  {header}")
    print(f"  {sep}")
    for r in results:
        row = (
            f"{r.model[-24:]:>24} │ {r.avg_total_time_ms:>10.1f} │ "
            f"{_ms(r.avg_ttft_ms, True, r.is_stream):>10} │ "
            f"{_ms(r.avg_tpot_ms, True, r.is_stream):>10} │ "
            f"{r.avg_dns_time_ms:>9.1f} │ {r.avg_connect_time_ms:>9.1f} │ "
            f"{r.avg_tls_handshake_time_ms:>9.1f} │ "
            f"{r.avg_input_token_count:>7.0f} │ {r.avg_output_token_count:>7.0f} │ "
            f"{r.avg_tps:>8.1f} │ {r.success_rate:>6.1f} │ {r.total_time_ms:>10.1f}"
        )
        print(f"  {row}")
    print(f"  {sep}")
    print()


def print_errors(errors: list[str], limit: int = 10) -> None:
    if not errors:
        return
    print(f"  Errors ({len(errors)}):")
    for message in errors[:limit]:
        print(f"    - {message}")
    if len(errors) > limit:
        print(f"    ... {len(errors) - limit} more")
    print()


# ─── Main ────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    defaults = load_config()
    parser = argparse.ArgumentParser(description="Benchmark LLM chat APIs")
    parser.add_argument("--protocol", default=defaults.protocol, help="openai or anthropic")
    parser.add_argument("--base-url", default=None, help="API base URL")
    parser.add_argument("--api-key", default=None, help="API key")
    parser.add_argument("--model", default=defaults.model, help="Model name")
    parser.add_argument("--models", default="", help="Comma-separated model names")
    parser.add_argument("--prompt", default=None, help="Prompt text (stdin is read when piped)")
    parser.add_argument("--prompt-file", default=None, help="Prompt file or glob, e.g. prompts/*.txt")
    parser.add_argument("--prompt-length", type=int, default=0, help="Generate a prompt of N characters")
    parser.add_argument(
        "--stream",
        action=argparse.BooleanOptionalAction,
        default=defaults.stream,
        help="Use streaming responses (default: on)",
    )
    parser.add_argument("--concurrency", type=int, default=defaults.concurrency)
    parser.add_argument("--count", type=int, default=defaults.count, help="Total requests per model")
    parser.add_argument("--timeout", type=float, default=defaults.timeout_s, help="Per-request timeout in seconds")
    parser.add_argument("--max-tokens", type=int, default=defaults.max_tokens)
    parser.add_argument("--thinking", action="store_true", help="Request thinking/reasoning tokens")
    parser.add_argument("--log", action="store_true", help="Write a JSON-lines request log")
    parser.add_argument("--report", action="store_true", help="Write JSON and CSV reports")
    parser.add_argument("--report-dir", default=".", help="Directory for report files")
    parser.add_argument("--log-level", default=defaults.log_level)
    return parser


async def run_models(
    args: argparse.Namespace, prompt_source: PromptSource, models: list[str]
) -> list[ReportData]:
    env_base_url, env_api_key = provider_env(args.protocol)
    run_id = new_run_id()
    results: list[ReportData] = []

    for model in models:
        config = BenchmarkConfig(
            protocol=args.protocol,
            base_url=args.base_url or env_base_url,
            api_key=args.api_key or env_api_key,
            model=model,
            prompt_source=prompt_source,
            concurrency=args.concurrency,
            count=args.count,
            stream=args.stream,
            timeout_s=args.timeout,
            thinking=args.thinking,
            log=args.log,
            max_tokens=args.max_tokens,
        )
        errors: list[str] = []

        def on_progress(stats: StatsData) -> None:
            errors[:] = stats.error_messages
            print_progress(stats, config.count)

        print(f"  {model} ({config.protocol}, {prompt_source.display_text[:60]})")
        async with Runner(config, run_id=run_id) as runner:
            results.append(await runner.run_with_progress(on_progress))
        print_errors(errors)

    return results


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    models = parse_models(args)
    if not models:
        print("Error: --model or --models is required", file=sys.stderr)
        return 1

    try:
        prompt_source = build_prompt_source(args)
        results = asyncio.run(run_models(args, prompt_source, models))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print_results(results)

    if args.report:
        json_path = render_json(results, args.report_dir)
        csv_path = render_csv(results, args.report_dir)
        logger.info("Reports written: %s, %s", json_path, csv_path)
        print(f"  Reports: {json_path}, {csv_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
