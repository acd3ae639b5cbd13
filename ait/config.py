"""Benchmark configuration: environment defaults and the per-run settings.

Environment handling stays dependency-free so the same defaults are usable
from the CLI and from tests.
"""

from __future__ import annotations

from dataclasses import dataclass
import os

from ait.prompt_source import PromptProvider

SUPPORTED_PROTOCOLS = ("openai", "anthropic")

DEFAULT_CONCURRENCY = 3
DEFAULT_COUNT = 10
DEFAULT_TIMEOUT_S = 300.0
DEFAULT_MAX_TOKENS = 4096
DEFAULT_THINKING_BUDGET = 1024


class ConfigurationError(ValueError):
    """Raised when a benchmark cannot start because its settings are invalid."""


def _get_env(name: str, default: str | None = None) -> str:
    """Return a required or defaulted environment variable value."""
    value = os.getenv(name, default)
    if value is None:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _get_int(name: str, default: int) -> int:
    """Read an integer environment variable with a safe default."""
    raw_value = os.getenv(name, str(default))
    try:
        return int(raw_value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer for {name}: {raw_value}") from exc


def _get_float(name: str, default: float) -> float:
    """Read a float environment variable with a safe default."""
    raw_value = os.getenv(name, str(default))
    try:
        return float(raw_value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid float for {name}: {raw_value}") from exc


def _get_bool(name: str, default: bool) -> bool:
    """Read a boolean environment variable (1/0, true/false, yes/no)."""
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return default
    normalized = raw_value.strip().lower()
    if normalized in ("1", "true", "yes", "on"):
        return True
    if normalized in ("0", "false", "no", "off"):
        return False
    raise RuntimeError(f"Invalid boolean for {name}: {raw_value}")


def _detect_protocol() -> str:
    """Pick a protocol from whichever provider credentials are exported."""
    explicit = os.getenv("AIT_PROTOCOL", "").strip().lower()
    if explicit:
        return explicit
    if os.getenv("OPENAI_API_KEY") or os.getenv("OPENAI_BASE_URL"):
        return "openai"
    if os.getenv("ANTHROPIC_API_KEY") or os.getenv("ANTHROPIC_BASE_URL"):
        return "anthropic"
    return ""


def provider_env(protocol: str) -> tuple[str, str]:
    """Return (base_url, api_key) exported for a protocol, empty when unset."""
    if protocol == "openai":
        return os.getenv("OPENAI_BASE_URL", ""), os.getenv("OPENAI_API_KEY", "")
    if protocol == "anthropic":
        return os.getenv("ANTHROPIC_BASE_URL", ""), os.getenv("ANTHROPIC_API_KEY", "")
    return "", ""


@dataclass(frozen=True)
class EnvDefaults:
    """Defaults the CLI falls back to when a flag is not given."""

    protocol: str
    base_url: str
    api_key: str
    model: str
    concurrency: int
    count: int
    timeout_s: float
    max_tokens: int
    stream: bool
    log_level: str


def load_config() -> EnvDefaults:
    """Load benchmark defaults from environment variables."""
    protocol = _detect_protocol()
    base_url, api_key = provider_env(protocol)
    return EnvDefaults(
        protocol=protocol,
        base_url=base_url,
        api_key=api_key,
        model=_get_env("AIT_MODEL", ""),
        concurrency=_get_int("AIT_CONCURRENCY", DEFAULT_CONCURRENCY),
        count=_get_int("AIT_COUNT", DEFAULT_COUNT),
        timeout_s=_get_float("AIT_TIMEOUT_S", DEFAULT_TIMEOUT_S),
        max_tokens=_get_int("AIT_MAX_TOKENS", DEFAULT_MAX_TOKENS),
        stream=_get_bool("AIT_STREAM", True),
        log_level=_get_env("LOG_LEVEL", "INFO"),
    )


@dataclass(frozen=True)
class BenchmarkConfig:
    """Settings for one benchmark run against one model.

    ``prompt_source`` is any ``PromptProvider``; see ``ait.prompt_source``.
    """

    protocol: str
    base_url: str
    api_key: str
    model: str
    prompt_source: PromptProvider
    concurrency: int = DEFAULT_CONCURRENCY
    count: int = DEFAULT_COUNT
    stream: bool = True
    timeout_s: float = DEFAULT_TIMEOUT_S
    thinking: bool = False
    log: bool = False
    max_tokens: int = DEFAULT_MAX_TOKENS
    thinking_budget: int = DEFAULT_THINKING_BUDGET

    def validate(self) -> None:
        """Raise ConfigurationError if the run cannot start."""
        if self.protocol not in SUPPORTED_PROTOCOLS:
            raise ConfigurationError(
                f"Unsupported protocol {self.protocol!r}. "
                f"Expected one of: {', '.join(SUPPORTED_PROTOCOLS)}"
            )
        if not self.base_url:
            raise ConfigurationError("A base URL is required")
        if not self.api_key:
            raise ConfigurationError("An API key is required")
        if not self.model:
            raise ConfigurationError("A model name is required")
        if self.concurrency < 1:
            raise ConfigurationError(f"Concurrency must be >= 1, got {self.concurrency}")
        if self.count < 1:
            raise ConfigurationError(f"Count must be >= 1, got {self.count}")
        if self.timeout_s <= 0:
            raise ConfigurationError(f"Timeout must be > 0, got {self.timeout_s}")
        if self.prompt_source is None:
            raise ConfigurationError("A prompt source is required")
