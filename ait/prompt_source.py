"""Prompt sources: literal text, files, globs of files, or generated filler."""

from __future__ import annotations

import glob
import logging
from pathlib import Path
import random
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)

_GLOB_CHARS = ("*", "?", "[")

_FILLER_BLOCK = (
    "This is filler text for latency benchmarking. Language models are used for "
    "summarization, translation, question answering and code generation, and "
    "their serving performance depends on prompt length, output length and "
    "concurrency. Testing inputs of different sizes shows how a deployment "
    "behaves as the amount of prefill work grows."
)


class PromptProvider(Protocol):
    """Capability the runner needs from a prompt source."""

    def get_content_by_index(self, index: int) -> str: ...

    def get_random_content(self) -> str: ...

    def count(self) -> int: ...


class PromptSource:
    """Prompts held in memory or read lazily from files.

    Exactly one of ``contents`` and ``file_paths`` is populated.
    """

    def __init__(
        self,
        contents: Sequence[str] = (),
        file_paths: Sequence[Path] = (),
        display_text: str = "",
        rng: random.Random | None = None,
    ) -> None:
        self.contents = list(contents)
        self.file_paths = [Path(path) for path in file_paths]
        self.display_text = display_text
        self._rng = rng or random.Random()

    @property
    def is_file(self) -> bool:
        return bool(self.file_paths)

    def count(self) -> int:
        return len(self.file_paths) if self.is_file else len(self.contents)

    def get_random_content(self) -> str:
        if not self.is_file:
            if not self.contents:
                return ""
            return self._rng.choice(self.contents)
        return self._read(self._rng.choice(self.file_paths)) or ""

    def get_content_by_index(self, index: int) -> str:
        """Return prompt ``index``, or a random prompt when out of range."""
        if index < 0 or index >= self.count():
            return self.get_random_content()
        if not self.is_file:
            return self.contents[index]
        content = self._read(self.file_paths[index])
        if content is None:
            return self.get_random_content()
        return content

    @staticmethod
    def _read(path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to read prompt file %s: %s", path, exc)
            return None


def load_prompts(text: str) -> PromptSource:
    """Wrap literal prompt text."""
    return PromptSource(contents=[text], display_text=text)


def load_prompts_from_file(path_pattern: str) -> PromptSource:
    """Load a single prompt file or every file matching a glob pattern."""
    if any(char in path_pattern for char in _GLOB_CHARS):
        matches = sorted(glob.glob(path_pattern, recursive=True))
        if not matches:
            raise ValueError(f"No files match pattern: {path_pattern}")
        file_paths = [Path(match) for match in matches if Path(match).is_file()]
        if not file_paths:
            raise ValueError(f"No readable files match pattern: {path_pattern}")
        return PromptSource(
            file_paths=file_paths,
            display_text=f"files: {path_pattern} ({len(file_paths)})",
        )

    path = Path(path_pattern)
    if not path.is_file():
        raise ValueError(f"Prompt file does not exist: {path_pattern}")
    return PromptSource(file_paths=[path], display_text=f"file: {path_pattern} (1)")


def generate_prompt_by_length(length: int) -> str:
    """Build filler text of exactly ``length`` characters."""
    if length <= 0:
        return ""
    parts: list[str] = []
    current = 0
    while current < length:
        if current:
            parts.append(" ")
            current += 1
            if current >= length:
                break
        piece = _FILLER_BLOCK[: length - current]
        parts.append(piece)
        current += len(piece)
    return "".join(parts)


def load_prompt_by_length(length: int) -> PromptSource:
    """Wrap generated filler text of ``length`` characters."""
    if length <= 0:
        raise ValueError("Prompt length must be greater than 0")
    content = generate_prompt_by_length(length)
    return PromptSource(
        contents=[content],
        display_text=f"generated ({len(content)} chars)",
    )
