"""Decoder for Bedrock `invoke-with-response-stream` event-stream responses."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import AsyncGenerator, AsyncIterable
from dataclasses import dataclass
from typing import Any

from botocore.eventstream import EventStreamBuffer, EventStreamMessage, ParserError

logger = logging.getLogger(__name__)

_BYTES_MARKER = b'{"bytes":"'
_CHUNK_EVENT_TYPE = "chunk"
_FAULT_MESSAGE_TYPES = frozenset({"exception", "error"})


@dataclass(frozen=True)
class DecodedChunk:
    """One JSON fragment carried by an event-stream chunk."""

    document: dict[str, Any]
    payload_bytes: bytes


class EventStreamDecodeError(ValueError):
    """Raised when a stream chunk cannot be decoded into a JSON fragment."""


class EventStreamExceptionError(RuntimeError):
    """Raised when the service sends an exception frame mid-stream."""

    def __init__(self, *, exception_type: str, message: str) -> None:
        self.exception_type = exception_type
        self.message = message
        super().__init__(f"{exception_type}: {message}")


def extract_chunk_fragment(chunk: bytes) -> DecodedChunk:
    """Extract and parse the base64 JSON fragment embedded after `{"bytes":"`."""

    marker_index = chunk.find(_BYTES_MARKER)
    if marker_index < 0:
        raise EventStreamDecodeError("chunk missing bytes marker")

    start = marker_index + len(_BYTES_MARKER)
    end = chunk.find(b'"', start)
    if end < 0:
        raise EventStreamDecodeError("chunk bytes field is not terminated")

    try:
        payload_bytes = base64.b64decode(chunk[start:end], validate=True)
    except (binascii.Error, ValueError) as error:
        raise EventStreamDecodeError("chunk bytes field is not valid base64") from error

    try:
        document = json.loads(payload_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise EventStreamDecodeError("chunk bytes field is not valid JSON") from error
    if not isinstance(document, dict):
        raise EventStreamDecodeError("chunk bytes field is not a JSON object")

    return DecodedChunk(document=document, payload_bytes=payload_bytes)


class EventStreamDecoder:
    """Incremental frame reader that buffers records split across transport chunks."""

    def __init__(self) -> None:
        self._buffer = EventStreamBuffer()
        self._pending_bytes = 0

    def feed(self, chunk: bytes) -> list[DecodedChunk]:
        """Add transport bytes and return fragments for every completed frame."""

        self._buffer.add_data(chunk)
        self._pending_bytes += len(chunk)

        fragments: list[DecodedChunk] = []
        try:
            for message in self._buffer:
                self._pending_bytes -= message.prelude.total_length
                fragment = _decode_message(message)
                if fragment is not None:
                    fragments.append(fragment)
        except ParserError as error:
            raise EventStreamDecodeError(f"invalid event-stream frame: {error}") from error
        return fragments

    def finish(self) -> None:
        """Signal end of stream and fail if a partial frame is still buffered."""

        if self._pending_bytes:
            raise EventStreamDecodeError(
                f"stream ended inside a frame with {self._pending_bytes} bytes pending"
            )

    async def decode_chunks(
        self, chunks: AsyncIterable[bytes]
    ) -> AsyncGenerator[DecodedChunk, None]:
        """Yield decoded fragments lazily from an async sequence of transport chunks."""

        async for chunk in chunks:
            for fragment in self.feed(chunk):
                yield fragment
        self.finish()


def _decode_message(message: EventStreamMessage) -> DecodedChunk | None:
    headers = message.headers
    message_type = headers.get(":message-type", "event")
    if message_type in _FAULT_MESSAGE_TYPES:
        raise EventStreamExceptionError(
            exception_type=str(
                headers.get(":exception-type") or headers.get(":error-code") or "unknown"
            ),
            message=_decode_fault_message(message.payload),
        )

    event_type = headers.get(":event-type", _CHUNK_EVENT_TYPE)
    if event_type != _CHUNK_EVENT_TYPE:
        logger.debug("event_stream_frame_skipped event_type=%s", event_type)
        return None
    return extract_chunk_fragment(message.payload)


def _decode_fault_message(payload: bytes) -> str:
    try:
        decoded = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return payload[:200].decode("utf-8", errors="replace")
    if isinstance(decoded, dict):
        message = decoded.get("message") or decoded.get("Message")
        if isinstance(message, str):
            return message
    return str(decoded)[:200]
