"""Pluggable request encoding and response text extraction for Bedrock models."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Protocol

from bedrock_endpoint.domain.model_payloads import (
    JSON_CONTENT_TYPE,
    PayloadSpec,
    build_payload,
    require_model_dialect,
)


class ContentHandlerPort(Protocol):
    """Strategy that turns prompts into request bytes and response bytes into text."""

    content_type: str
    accepts: str

    def encode(self, prompt: str, model_kwargs: Mapping[str, Any]) -> bytes:
        """Return the request body for the prompt in `content_type` format."""

    def decode(self, output: bytes) -> str:
        """Return generated text from one response body or stream fragment."""


class ContentDecodeError(ValueError):
    """Raised when a response document does not carry the expected text field."""


class CompletionsContentHandler:
    """JSON handler for endpoints answering with `completions[0].data.text`."""

    content_type = JSON_CONTENT_TYPE
    accepts = JSON_CONTENT_TYPE

    def encode(self, prompt: str, model_kwargs: Mapping[str, Any]) -> bytes:
        payload = {"prompt": prompt, **model_kwargs}
        return json.dumps(payload, ensure_ascii=False).encode("utf-8")

    def decode(self, output: bytes) -> str:
        document = _load_json_object(output)
        completions = document.get("completions")
        if not isinstance(completions, list) or not completions:
            raise ContentDecodeError("response missing completions")

        first = completions[0]
        data = first.get("data") if isinstance(first, Mapping) else None
        text = data.get("text") if isinstance(data, Mapping) else None
        if not isinstance(text, str):
            raise ContentDecodeError("response missing completions[0].data.text")
        return text


class ModelDialectContentHandler:
    """Handler that encodes and decodes with the rules of one model family."""

    content_type = JSON_CONTENT_TYPE
    accepts = JSON_CONTENT_TYPE

    def __init__(self, *, model_id: str) -> None:
        self._model_id = model_id
        self._dialect = require_model_dialect(model_id)

    def encode(self, prompt: str, model_kwargs: Mapping[str, Any]) -> bytes:
        payload = build_payload(prompt=prompt, model_id=self._model_id, model_kwargs=model_kwargs)
        return self.encode_payload(payload)

    def encode_payload(self, payload: PayloadSpec) -> bytes:
        """Serialize an already built payload body."""

        return json.dumps(payload.body, ensure_ascii=False).encode("utf-8")

    def decode(self, output: bytes) -> str:
        document = _load_json_object(output)
        text = self._dialect.read_text(document)
        if text is None:
            raise ContentDecodeError(
                f"{self._dialect.family} response missing {self._dialect.text_field}"
            )
        return text


def _load_json_object(output: bytes) -> dict[str, Any]:
    try:
        decoded = json.loads(output.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise ContentDecodeError("response is not valid JSON") from error
    if not isinstance(decoded, dict):
        raise ContentDecodeError("response is not a JSON object")
    return decoded
