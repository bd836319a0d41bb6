"""
Wire codec.

Requests and responses are single UTF-8 JSON documents. A request ends at
the first newline or when the client half-closes its side, whichever comes
first, so both newline-terminated clients and clients that simply close
their write side are understood. Responses are always newline-terminated.
"""

import asyncio
import json
from typing import Any

from pydantic import ValidationError

from funkovault.models.failure import ProtocolError, RequestTimeoutError
from funkovault.models.protocol import Request, RequestKind, Response

FRAME_DELIMITER = b"\n"
READ_CHUNK_SIZE = 4096

_REQUEST_KINDS = frozenset(kind.value for kind in RequestKind)


def describe_validation_error(error: ValidationError) -> str:
    """One-line summary of a pydantic validation error."""
    parts = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        parts.append(f"{location}: {err['msg']}" if location else err["msg"])
    return "; ".join(parts)


def _check_frame_size(frame: bytes | bytearray, max_bytes: int) -> None:
    if len(frame) > max_bytes:
        raise ProtocolError("Request too large", detail=f"Limit is {max_bytes} bytes")


async def _read_until_delimiter_or_eof(reader: asyncio.StreamReader, max_bytes: int) -> bytes:
    buffer = bytearray()
    while True:
        end = buffer.find(FRAME_DELIMITER)
        while end != -1:
            frame = bytes(buffer[:end])
            # Blank lines ahead of the document are not a request
            if frame.strip():
                _check_frame_size(frame, max_bytes)
                return frame
            del buffer[: end + 1]
            end = buffer.find(FRAME_DELIMITER)

        # Runs before every read, so the tail returned at EOF is bounded too
        _check_frame_size(buffer, max_bytes)
        chunk = await reader.read(READ_CHUNK_SIZE)
        if not chunk:
            return bytes(buffer)
        buffer += chunk


async def read_frame(reader: asyncio.StreamReader, max_bytes: int, timeout: float) -> bytes:
    """
    Read one request frame.

    Raises:
        RequestTimeoutError: If no complete frame arrives within `timeout`.
        ProtocolError: If the frame exceeds `max_bytes`.
    """
    try:
        return await asyncio.wait_for(_read_until_delimiter_or_eof(reader, max_bytes), timeout)
    except asyncio.TimeoutError as e:
        raise RequestTimeoutError(timeout) from e


def decode_request(raw: bytes) -> Request:
    """
    Parse one frame into a Request.

    Raises:
        ProtocolError: With message "Invalid JSON format", "Invalid request
            type" or "Invalid request: ..." depending on what is wrong.
    """
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError("Invalid JSON format", detail=str(e)) from e

    if not isinstance(payload, dict):
        raise ProtocolError("Invalid JSON format", detail="Request must be a JSON object")

    kind = payload.get("type")
    if not isinstance(kind, str) or kind not in _REQUEST_KINDS:
        raise ProtocolError("Invalid request type", detail=f"Unknown request type: {kind!r}")

    try:
        return Request.model_validate(payload)
    except ValidationError as e:
        raise ProtocolError(f"Invalid request: {describe_validation_error(e)}", detail=str(e)) from e


def encode_response(response: Response) -> bytes:
    return _encode(response.to_wire())


def encode_request(request: Request) -> bytes:
    return _encode(request.to_wire())


def decode_response(raw: bytes) -> Response:
    """
    Parse a response document.

    Raises:
        ProtocolError: If the bytes are not a valid response.
    """
    try:
        return Response.model_validate_json(raw.strip())
    except ValidationError as e:
        raise ProtocolError("Invalid response", detail=str(e)) from e


def _encode(document: dict[str, Any]) -> bytes:
    return json.dumps(document, ensure_ascii=False).encode("utf-8") + FRAME_DELIMITER
