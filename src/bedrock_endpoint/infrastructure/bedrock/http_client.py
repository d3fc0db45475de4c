"""Bedrock model endpoint adapter with signed HTTP invoke and response streaming."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Mapping
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from bedrock_endpoint.domain.model_payloads import (
    ModelDialect,
    PayloadSpec,
    ResponseMode,
    build_payload,
    get_model_dialect,
    require_model_dialect,
)
from bedrock_endpoint.infrastructure.bedrock.content_handlers import (
    ContentHandlerPort,
    ModelDialectContentHandler,
)
from bedrock_endpoint.infrastructure.bedrock.event_stream import EventStreamDecoder
from bedrock_endpoint.infrastructure.bedrock.signing import RequestSignerPort

logger = logging.getLogger(__name__)

LLM_TYPE = "bedrock_endpoint"
_STREAM_READ_SIZE = 8192


@dataclass(frozen=True)
class BedrockHttpResponse:
    """Normalized single-body HTTP response returned by transports."""

    status_code: int
    body_bytes: bytes


@dataclass(frozen=True)
class BedrockHttpStreamResponse:
    """Normalized streaming HTTP response returned by transports."""

    status_code: int
    chunks: AsyncGenerator[bytes, None]


class BedrockHttpTransportPort(Protocol):
    """Transport protocol used by the Bedrock endpoint adapter."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> BedrockHttpResponse:
        """Execute one HTTP request and return the full response body."""

    async def stream(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> BedrockHttpStreamResponse:
        """Execute one HTTP request and return the response body as a chunk iterator."""


class BedrockAdapterError(RuntimeError):
    """Raised for normalized Bedrock adapter failures."""


class BedrockTransportError(BedrockAdapterError):
    """Raised when the HTTP exchange with Bedrock fails."""


class BedrockHttpStatusError(BedrockTransportError):
    """Raised when Bedrock answers with a non-2xx status."""

    def __init__(self, *, operation: str, status_code: int, details: str) -> None:
        self.operation = operation
        self.status_code = status_code
        self.details = details
        super().__init__(f"{operation} failed with status {status_code}: {details}")


class UrllibBedrockHttpTransport:
    """urllib-based async transport implementation for Bedrock HTTP calls."""

    def __init__(self, *, read_size: int = _STREAM_READ_SIZE) -> None:
        self._read_size = read_size

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> BedrockHttpResponse:
        """Execute HTTP request in a worker thread and normalize HTTP errors."""

        return await asyncio.to_thread(
            self._request_sync,
            method=method,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=timeout_seconds,
        )

    async def stream(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> BedrockHttpStreamResponse:
        """Open the response in a worker thread and read chunks as they arrive."""

        response = await asyncio.to_thread(
            self._open_sync,
            method=method,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=timeout_seconds,
        )
        status_code = int(response.getcode())
        return BedrockHttpStreamResponse(
            status_code=status_code,
            chunks=self._iter_chunks(response),
        )

    def _request_sync(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> BedrockHttpResponse:
        response = self._open_sync(
            method=method,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=timeout_seconds,
        )
        with response:
            status_code = int(response.getcode())
            payload = response.read()
        return BedrockHttpResponse(status_code=status_code, body_bytes=payload)

    def _open_sync(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> Any:
        request = Request(url=url, data=body, headers=headers, method=method)
        try:
            return urlopen(request, timeout=timeout_seconds)
        except HTTPError as error:
            return error
        except URLError as error:
            raise BedrockTransportError(f"transport connection failure: {error}") from error

    async def _iter_chunks(self, response: Any) -> AsyncGenerator[bytes, None]:
        try:
            while True:
                chunk = await asyncio.to_thread(response.read1, self._read_size)
                if not chunk:
                    break
                yield chunk
        finally:
            response.close()


@dataclass(frozen=True)
class BedrockEndpointConfig:
    """Explicit configuration for one Bedrock endpoint adapter instance."""

    region: str
    model_id: str
    role_arn: str | None = None
    stream: bool = False
    model_kwargs: Mapping[str, Any] = field(default_factory=dict)
    timeout_seconds: float = 60.0
    endpoint_url: str | None = None

    def __post_init__(self) -> None:
        if not self.region.strip():
            raise ValueError("region must be a non-empty string")
        if not self.model_id.strip():
            raise ValueError("model_id must be a non-empty string")
        if self.role_arn is not None and not self.role_arn.strip():
            raise ValueError("role_arn must be a non-empty string when provided")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    @property
    def base_url(self) -> str:
        """Return the Bedrock endpoint root for the configured region."""

        if self.endpoint_url:
            return self.endpoint_url.rstrip("/")
        return f"https://bedrock.{self.region}.amazonaws.com"

    def invoke_url(self, *, stream: bool) -> str:
        """Return the invoke URL for the configured model."""

        action = "invoke-with-response-stream" if stream else "invoke"
        return f"{self.base_url}/model/{quote(self.model_id, safe='')}/{action}"


@dataclass(frozen=True)
class GenerationFragment:
    """Text decoded from one streamed response fragment."""

    text: str
    stop_reason: str | None = None


@dataclass(frozen=True)
class GenerationResult:
    """Generated text plus termination metadata for one invocation."""

    text: str
    stop_reason: str | None
    fragment_count: int


class BedrockEndpointClient:
    """Generate text from a prompt through a signed Bedrock model endpoint."""

    def __init__(
        self,
        *,
        config: BedrockEndpointConfig,
        signer: RequestSignerPort,
        content_handler: ContentHandlerPort | None = None,
        transport: BedrockHttpTransportPort | None = None,
    ) -> None:
        dialect = get_model_dialect(config.model_id)
        if config.stream and dialect is not None and dialect.response_mode is ResponseMode.SINGLE:
            raise ValueError(f"model '{config.model_id}' does not support response streaming")

        self._config = config
        self._signer = signer
        self._content_handler = content_handler
        self._transport = transport or UrllibBedrockHttpTransport()

    @property
    def llm_type(self) -> str:
        return LLM_TYPE

    @property
    def model_name(self) -> str:
        """Return configured Bedrock model identifier for this client instance."""

        return self._config.model_id

    async def generate(self, prompt: str) -> str:
        """Return generated text for the prompt."""

        result = await self.complete(prompt)
        return result.text

    async def complete(self, prompt: str) -> GenerationResult:
        """Invoke the model once and return text with termination metadata."""

        if not self._config.stream:
            return await self._invoke(prompt)

        text_parts: list[str] = []
        stop_reason: str | None = None
        async for fragment in self.stream_generate(prompt):
            text_parts.append(fragment.text)
            if fragment.stop_reason is not None:
                stop_reason = fragment.stop_reason
        return GenerationResult(
            text="".join(text_parts),
            stop_reason=stop_reason,
            fragment_count=len(text_parts),
        )

    async def stream_generate(self, prompt: str) -> AsyncIterator[GenerationFragment]:
        """Yield decoded fragments as the streamed response arrives."""

        payload, dialect, handler, body = self._prepare(prompt)
        if payload.options.response_mode is not ResponseMode.STREAM:
            raise ValueError(f"model '{payload.model_id}' does not support response streaming")
        url = self._config.invoke_url(stream=True)
        headers = {
            "accept": handler.accepts,
            "content-type": handler.content_type,
            **payload.options.headers,
        }
        signed_headers = await self._sign(url=url, headers=headers, body=body)

        logger.info(
            "bedrock_invoke_started model_id=%s stream=%s", self._config.model_id, True
        )
        response = await self._transport.stream(
            method="POST",
            url=url,
            headers=signed_headers,
            body=body,
            timeout_seconds=self._config.timeout_seconds,
        )
        fragment_count = 0
        async with aclosing(response.chunks) as chunks:
            if not 200 <= response.status_code < 300:
                error_body = b"".join([chunk async for chunk in chunks])
                raise BedrockHttpStatusError(
                    operation="invoke_with_response_stream",
                    status_code=response.status_code,
                    details=_decode_error_payload(error_body),
                )

            decoder = EventStreamDecoder()
            async with aclosing(decoder.decode_chunks(chunks)) as fragments:
                async for fragment in fragments:
                    fragment_count += 1
                    yield GenerationFragment(
                        text=handler.decode(fragment.payload_bytes),
                        stop_reason=dialect.read_stop_reason(fragment.document),
                    )
        logger.info(
            "bedrock_stream_completed model_id=%s fragments=%s",
            self._config.model_id,
            fragment_count,
        )

    async def _invoke(self, prompt: str) -> GenerationResult:
        _, dialect, handler, body = self._prepare(prompt)
        url = self._config.invoke_url(stream=False)
        headers = {
            "accept": handler.accepts,
            "content-type": handler.content_type,
        }
        signed_headers = await self._sign(url=url, headers=headers, body=body)

        logger.info(
            "bedrock_invoke_started model_id=%s stream=%s", self._config.model_id, False
        )
        response = await self._transport.request(
            method="POST",
            url=url,
            headers=signed_headers,
            body=body,
            timeout_seconds=self._config.timeout_seconds,
        )
        if not 200 <= response.status_code < 300:
            raise BedrockHttpStatusError(
                operation="invoke",
                status_code=response.status_code,
                details=_decode_error_payload(response.body_bytes),
            )

        text = handler.decode(response.body_bytes)
        return GenerationResult(
            text=text,
            stop_reason=_read_stop_reason(dialect, response.body_bytes),
            fragment_count=1,
        )

    def _prepare(
        self, prompt: str
    ) -> tuple[PayloadSpec, ModelDialect, ContentHandlerPort, bytes]:
        payload = build_payload(
            prompt=prompt,
            model_id=self._config.model_id,
            model_kwargs=self._config.model_kwargs,
        )
        dialect = require_model_dialect(payload.model_id)
        if self._content_handler is not None:
            body = self._content_handler.encode(prompt, self._config.model_kwargs)
            return payload, dialect, self._content_handler, body

        handler = ModelDialectContentHandler(model_id=payload.model_id)
        return payload, dialect, handler, handler.encode_payload(payload)

    async def _sign(self, *, url: str, headers: dict[str, str], body: bytes) -> dict[str, str]:
        return await asyncio.to_thread(
            self._signer.sign,
            method="POST",
            url=url,
            headers=headers,
            body=body,
        )


def _read_stop_reason(dialect: ModelDialect, body: bytes) -> str | None:
    try:
        document = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if not isinstance(document, dict):
        return None
    return dialect.read_stop_reason(document)


def _decode_error_payload(payload: bytes) -> str:
    if not payload:
        return "empty response body"
    try:
        decoded = payload.decode("utf-8")
    except UnicodeDecodeError:
        return "<binary>"
    return decoded[:200]
