"""
Text-generation boundary for study aids.

The engine never talks to a model provider directly. Whatever serves the
notes generator and the doubt solver (an HTTP proxy, a hosted model, a test
double) implements `TextGenerator` and reports failures with the typed
errors below instead of transport-specific ones:

- `RateLimitedError`: the backend is throttling; try again shortly
- `CreditsExhaustedError`: the account is out of credits
- `TextGenerationError`: any other failure
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from src.domain.models.study_aids import GenerationPrompt


class TextGenerator(Protocol):
    """Turns a prompt, with an optional attached image, into text."""

    async def generate_text(self, prompt: GenerationPrompt) -> str: ...


__all__ = ["TextGenerator"]
