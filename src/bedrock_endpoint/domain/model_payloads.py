"""Model-family request payloads and response field rules for Bedrock endpoints."""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

MODEL_TITAN_TG1_LARGE = "amazon.titan-tg1-large"
MODEL_CLAUDE_V1 = "anthropic.claude-v1"
MODEL_CLAUDE_INSTANT_V1 = "anthropic.claude-instant-v1"

EVENT_STREAM_CONTENT_TYPE = "application/vnd.amazon.eventstream"
JSON_CONTENT_TYPE = "application/json"


class ResponseMode(StrEnum):
    """How the endpoint delivers the model output."""

    SINGLE = "single"
    STREAM = "stream"


@dataclass(frozen=True)
class PayloadOptions:
    """HTTP option set declared by a model family."""

    headers: dict[str, str]
    response_mode: ResponseMode


@dataclass(frozen=True)
class PayloadSpec:
    """Request body and options built for one invocation."""

    model_id: str
    body: dict[str, Any]
    options: PayloadOptions


@dataclass(frozen=True)
class UnsupportedModel:
    """Resolution result for a model identifier outside the known dialects."""

    model_id: str


class UnsupportedModelError(LookupError):
    """Raised when a model identifier has no known request/response dialect."""

    def __init__(self, *, model_id: str) -> None:
        self.model_id = model_id
        super().__init__(f"Unsupported Bedrock model '{model_id}'")


@dataclass(frozen=True)
class ModelDialect:
    """Request shape and response field rules shared by one model family."""

    family: str
    build_body: Callable[[str, Mapping[str, Any]], dict[str, Any]]
    headers: Mapping[str, str] = field(default_factory=dict)
    response_mode: ResponseMode = ResponseMode.SINGLE
    text_field: str = "completion"
    stop_reason_field: str = "stop_reason"

    def read_text(self, document: Mapping[str, Any]) -> str | None:
        """Return generated text from a decoded response document, if present."""

        value = document.get(self.text_field)
        if isinstance(value, str):
            return value
        results = document.get("results")
        if isinstance(results, list) and results and isinstance(results[0], Mapping):
            nested = results[0].get(self.text_field)
            if isinstance(nested, str):
                return nested
        return None

    def read_stop_reason(self, document: Mapping[str, Any]) -> str | None:
        """Return termination metadata from a decoded response document, if present."""

        value = document.get(self.stop_reason_field)
        if isinstance(value, str):
            return value
        results = document.get("results")
        if isinstance(results, list) and results and isinstance(results[0], Mapping):
            nested = results[0].get(self.stop_reason_field)
            if isinstance(nested, str):
                return nested
        return None


def _titan_body(prompt: str, model_kwargs: Mapping[str, Any]) -> dict[str, Any]:
    generation_config: dict[str, Any] = {
        "maxTokenCount": 4000,
        "temperature": 0.0,
        "stopSequences": [],
    }
    generation_config.update(copy.deepcopy(dict(model_kwargs)))
    return {"inputText": prompt, "textGenerationConfig": generation_config}


def _claude_body(prompt: str, model_kwargs: Mapping[str, Any]) -> dict[str, Any]:
    body: dict[str, Any] = {"prompt": prompt, "max_tokens_to_sample": 200}
    body.update(copy.deepcopy(dict(model_kwargs)))
    return body


_MODEL_DIALECTS: dict[str, ModelDialect] = {
    MODEL_TITAN_TG1_LARGE: ModelDialect(
        family="titan",
        build_body=_titan_body,
        headers={
            "accept": EVENT_STREAM_CONTENT_TYPE,
            "content-type": JSON_CONTENT_TYPE,
            "x-amzn-bedrock-accept": "*/*",
            "x-amzn-bedrock-save": "true",
        },
        response_mode=ResponseMode.STREAM,
        text_field="outputText",
        stop_reason_field="completionReason",
    ),
    MODEL_CLAUDE_V1: ModelDialect(
        family="claude",
        build_body=_claude_body,
    ),
    MODEL_CLAUDE_INSTANT_V1: ModelDialect(
        family="claude",
        build_body=_claude_body,
        headers={
            "accept": EVENT_STREAM_CONTENT_TYPE,
            "content-type": JSON_CONTENT_TYPE,
        },
        response_mode=ResponseMode.STREAM,
    ),
}


def supported_model_ids() -> tuple[str, ...]:
    """Return known model identifiers in declaration order."""

    return tuple(_MODEL_DIALECTS)


def get_model_dialect(model_id: str) -> ModelDialect | None:
    """Return the dialect registered for a model identifier, or None when unknown."""

    return _MODEL_DIALECTS.get(model_id)


def require_model_dialect(model_id: str) -> ModelDialect:
    """Return the dialect for a model identifier or raise UnsupportedModelError."""

    dialect = get_model_dialect(model_id)
    if dialect is None:
        raise UnsupportedModelError(model_id=model_id)
    return dialect


def resolve_payload(
    *,
    prompt: str,
    model_id: str,
    model_kwargs: Mapping[str, Any] | None = None,
) -> PayloadSpec | UnsupportedModel:
    """Map prompt and model identifier to a fresh payload, or an unsupported-model result."""

    dialect = get_model_dialect(model_id)
    if dialect is None:
        return UnsupportedModel(model_id=model_id)

    return PayloadSpec(
        model_id=model_id,
        body=dialect.build_body(prompt, model_kwargs or {}),
        options=PayloadOptions(
            headers=dict(dialect.headers),
            response_mode=dialect.response_mode,
        ),
    )


def build_payload(
    *,
    prompt: str,
    model_id: str,
    model_kwargs: Mapping[str, Any] | None = None,
) -> PayloadSpec:
    """Return payload for a supported model or raise UnsupportedModelError."""

    resolved = resolve_payload(prompt=prompt, model_id=model_id, model_kwargs=model_kwargs)
    if isinstance(resolved, UnsupportedModel):
        raise UnsupportedModelError(model_id=resolved.model_id)
    return resolved
