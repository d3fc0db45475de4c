"""Blog-segment translation on top of the prompt chain."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bedrock_endpoint.application.ports.text_generation_port import TextGenerationPort
from bedrock_endpoint.application.services.prompt_chain import LlmChain, PromptTemplate

logger = logging.getLogger(__name__)

TRANSLATION_TEMPLATE = """
You are a professional blog translator, translate an HTML AWS blog segment from {sourceLanguage} to {targetLanguage}.
{sourceLanguage} text: {content}
{targetLanguage} text:
"""
TRANSLATION_INPUT_VARIABLES = ("content", "sourceLanguage", "targetLanguage", "guidelines")


@dataclass(frozen=True)
class TranslationRequest:
    """Text segment and language pair to translate."""

    content: str
    source_language: str = "en-US"
    target_language: str = "fr-FR"


def build_translation_prompt() -> PromptTemplate:
    """Return the blog translation prompt template."""

    return PromptTemplate(
        template=TRANSLATION_TEMPLATE,
        input_variables=TRANSLATION_INPUT_VARIABLES,
    )


class TranslationService:
    """Translate blog segments with a single LLM chain call."""

    def __init__(self, *, llm: TextGenerationPort, prompt: PromptTemplate | None = None) -> None:
        self._chain = LlmChain(llm=llm, prompt=prompt or build_translation_prompt())

    async def translate(self, request: TranslationRequest) -> str:
        """Return model output for the translation request."""

        if not request.content.strip():
            raise ValueError("content must be a non-empty string")

        logger.info(
            "translation_started source_language=%s target_language=%s chars=%s",
            request.source_language,
            request.target_language,
            len(request.content),
        )
        output = await self._chain.call(
            {
                "content": request.content,
                "sourceLanguage": request.source_language,
                "targetLanguage": request.target_language,
            }
        )
        return output.text
