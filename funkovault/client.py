"""
Async client for the collection server.

Sends one request per connection: write the request, half-close, read the
response until the server closes.
"""

import asyncio
from typing import Any

from funkovault.config import settings
from funkovault.models.failure import RequestTimeoutError
from funkovault.models.protocol import Request, Response
from funkovault.server.codec import decode_response, encode_request


async def send_request(
    request: Request | dict[str, Any],
    host: str | None = None,
    port: int | None = None,
    timeout: float = 10.0,
) -> Response:
    """
    Send a request and wait for the response.

    Args:
        request: A Request or its plain-dict wire form.
        host: Server host. Defaults to the configured host.
        port: Server port. Defaults to the configured port.
        timeout: Seconds to wait for the whole exchange.

    Raises:
        RequestTimeoutError: If the exchange takes longer than `timeout`.
        ProtocolError: If the server's reply is not a valid response.
        OSError: If the server cannot be reached.
    """
    if not isinstance(request, Request):
        request = Request.model_validate(request)

    try:
        return await asyncio.wait_for(
            _exchange(request, host or settings.host, port or settings.port), timeout
        )
    except asyncio.TimeoutError as e:
        raise RequestTimeoutError(timeout) from e


async def _exchange(request: Request, host: str, port: int) -> Response:
    reader, writer = await asyncio.open_connection(host, port)
    try:
        writer.write(encode_request(request))
        await writer.drain()
        if writer.can_write_eof():
            writer.write_eof()
        raw = await reader.read()
    finally:
        writer.close()
        await writer.wait_closed()
    return decode_response(raw)
