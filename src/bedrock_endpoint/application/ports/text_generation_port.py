"""Port for prompt-to-text generation backends."""

from __future__ import annotations

from typing import Protocol


class TextGenerationPort(Protocol):
    """Protocol for single-prompt text generation."""

    async def generate(self, prompt: str) -> str:
        """Return generated text for the supplied prompt."""
