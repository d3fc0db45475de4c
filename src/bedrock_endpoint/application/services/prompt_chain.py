"""Prompt template rendering and single-step LLM chain execution."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from string import Formatter

from bedrock_endpoint.application.ports.text_generation_port import TextGenerationPort

logger = logging.getLogger(__name__)


class MissingPromptVariableError(KeyError):
    """Raised when a template placeholder has no value in the supplied variables."""

    def __init__(self, *, names: tuple[str, ...]) -> None:
        self.names = names
        super().__init__(f"Missing prompt variables: {', '.join(names)}")


class PromptTemplate:
    """`str.format` style template with declared input variables."""

    def __init__(self, *, template: str, input_variables: Iterable[str]) -> None:
        self._template = template
        self._input_variables = tuple(input_variables)
        self._placeholders = _collect_placeholders(template)

        undeclared = sorted(set(self._placeholders) - set(self._input_variables))
        if undeclared:
            raise ValueError(f"template uses undeclared variables: {', '.join(undeclared)}")

    @property
    def input_variables(self) -> tuple[str, ...]:
        return self._input_variables

    def format(self, variables: Mapping[str, object]) -> str:
        """Render template, requiring a value for every placeholder it uses."""

        missing = tuple(name for name in self._placeholders if name not in variables)
        if missing:
            raise MissingPromptVariableError(names=missing)
        return self._template.format_map(
            {name: variables[name] for name in self._placeholders}
        )


@dataclass(frozen=True)
class ChainOutput:
    """Result of one chain call."""

    text: str


class LlmChain:
    """Render a prompt template and send it to a text generation backend."""

    def __init__(self, *, llm: TextGenerationPort, prompt: PromptTemplate) -> None:
        self._llm = llm
        self._prompt = prompt

    async def call(self, variables: Mapping[str, object]) -> ChainOutput:
        """Format the prompt from variables and return generated text."""

        rendered = self._prompt.format(variables)
        logger.debug("llm_chain_prompt_rendered chars=%s", len(rendered))
        text = await self._llm.generate(rendered)
        return ChainOutput(text=text)


def _collect_placeholders(template: str) -> tuple[str, ...]:
    names: list[str] = []
    for _, field_name, _, _ in Formatter().parse(template):
        if field_name is None:
            continue
        if not field_name or not field_name.isidentifier():
            raise ValueError(f"unsupported template placeholder: {{{field_name}}}")
        if field_name not in names:
            names.append(field_name)
    return tuple(names)
