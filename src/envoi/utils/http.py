"""Bounded HTTP body reading.

Chain node responses are small JSON or msgpack documents. Reading them
through [read_bounded_json()][envoi.utils.http.read_bounded_json] or
[read_bounded_msgpack()][envoi.utils.http.read_bounded_msgpack] keeps a
misbehaving node from streaming an unbounded body into memory.
"""

from __future__ import annotations

import json
from typing import Any

import aiohttp
import msgpack


DEFAULT_MAX_RESPONSE_SIZE = 1_048_576



async def read_bounded(response: aiohttp.ClientResponse, max_size: int) -> bytes:
    """Read a whole response body, failing once it grows past *max_size*.

    Reads chunk by chunk so chunked transfer-encoding is handled.

    Raises:
        ValueError: If the body exceeds *max_size* bytes.
    """
    chunks: list[bytes] = []
    total = 0
    while chunk := await response.content.read(max_size + 1 - total):
        total += len(chunk)
        if total > max_size:
            raise ValueError(f"Response body too large: >{max_size} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


async def read_bounded_json(
    response: aiohttp.ClientResponse, max_size: int = DEFAULT_MAX_RESPONSE_SIZE
) -> Any:
    """Read and parse a JSON body no larger than *max_size* bytes.

    Raises:
        ValueError: If the body is too large or is not valid JSON
            (``json.JSONDecodeError`` is a ``ValueError``).
    """
    return json.loads(await read_bounded(response, max_size))


async def read_bounded_msgpack(
    response: aiohttp.ClientResponse, max_size: int = DEFAULT_MAX_RESPONSE_SIZE
) -> Any:
    """Read and unpack a msgpack body no larger than *max_size* bytes.

    Binary fields come back as ``bytes`` and map keys may be integers, as
    algod uses both.

    Raises:
        ValueError: If the body is too large or is not valid msgpack.
    """
    raw = await read_bounded(response, max_size)
    try:
        return msgpack.unpackb(raw, raw=False, strict_map_key=False)
    except (msgpack.UnpackException, ValueError, TypeError) as e:
        raise ValueError(f"invalid msgpack body: {e}") from e
