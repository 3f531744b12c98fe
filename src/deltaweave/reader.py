"""Pull-based readers over an open response stream.

A reader owns the transport handed to it and a
:class:`~deltaweave.decoder.ResponsesDecoder`.  Each call to ``next()``
returns a queued chunk straight away or reads from the transport until
one can be produced.  ``None`` signals the end of the stream.

Accepted transports:

* an ``httpx.Response`` opened with ``client.stream(...)``
* anything with a ``read(size)`` method (sync reader only)
* any iterable (or async iterable) of ``bytes`` or ``str``

Closing the transport is the only way to cancel; once closed, a reader
must not be pulled again.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterator, Iterator
from typing import Any

import httpx

from deltaweave.decoder import ResponsesDecoder
from deltaweave.errors import TransportError
from deltaweave.instrumentation import (
    astream_span,
    record_error,
    record_tool_call,
    record_usage,
    stream_span,
)
from deltaweave.streaming import CompletionChunk, StreamChunk, ToolCallChunk

logger = logging.getLogger(__name__)

DEFAULT_READ_SIZE = 4096

TRANSPORT_ERRORS = (OSError, httpx.TransportError)


def _read_chunks(read, size: int) -> Iterator[bytes | str]:
    while True:
        data = read(size)
        if not data:
            return
        yield data


def _trace_chunk(span, chunk: StreamChunk) -> None:
    if isinstance(chunk, ToolCallChunk):
        record_tool_call(span, chunk)
    elif isinstance(chunk, CompletionChunk):
        record_usage(span, chunk.usage, chunk.finish_reason)


class StreamReader:
    """Blocking reader for a Responses API event stream.

    Usage::

        with client.stream("POST", url, json=body) as response:
            for chunk in StreamReader(response):
                ...

    Args:
        transport: The open byte stream to decode.
        read_size: Bytes requested per call on transports that only
            offer ``read(size)``.
        decoder: Decoder to feed; a fresh one is created when omitted.
    """

    def __init__(
        self,
        transport: Any,
        *,
        read_size: int = DEFAULT_READ_SIZE,
        decoder: ResponsesDecoder | None = None,
    ):
        self.transport = transport
        self.read_size = read_size
        self.decoder = decoder or ResponsesDecoder()
        self._source: Iterator[bytes | str] | None = None
        self._failure: BaseException | None = None
        self._closed = False

    def _open_source(self) -> Iterator[bytes | str]:
        transport = self.transport
        if hasattr(transport, "iter_bytes"):
            return iter(transport.iter_bytes())
        if hasattr(transport, "read"):
            return _read_chunks(transport.read, self.read_size)
        return iter(transport)

    def next(self) -> StreamChunk | None:
        """Return the next chunk, or ``None`` once the stream is over.

        Raises:
            TransportError: If reading the transport fails.  The reader is
                unusable afterwards.
        """
        if self._failure is not None:
            raise TransportError("Stream reader already failed") from self._failure
        if self._closed:
            return None
        while True:
            chunk = self.decoder.next_chunk()
            if chunk is not None:
                return chunk
            if self.decoder.input_ended:
                return None
            if self._source is None:
                self._source = self._open_source()
            try:
                data = next(self._source)
            except StopIteration:
                logger.debug("Response stream reached end of input")
                self.decoder.end_input()
                continue
            except TRANSPORT_ERRORS as exc:
                self._failure = exc
                raise TransportError(
                    f"Failed to read response stream: {exc}"
                ) from exc
            self.decoder.feed(data)

    def __iter__(self) -> Iterator[StreamChunk]:
        with stream_span() as span:
            while True:
                try:
                    chunk = self.next()
                except TransportError as exc:
                    record_error(span, exc)
                    raise
                if chunk is None:
                    return
                _trace_chunk(span, chunk)
                yield chunk

    def close(self) -> None:
        """Close the underlying transport."""
        if self._closed:
            return
        self._closed = True
        close = getattr(self.transport, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> StreamReader:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class AsyncStreamReader:
    """Async counterpart of :class:`StreamReader`.

    Usage::

        async with client.stream("POST", url, json=body) as response:
            async for chunk in AsyncStreamReader(response):
                ...
    """

    def __init__(
        self,
        transport: Any,
        *,
        decoder: ResponsesDecoder | None = None,
    ):
        self.transport = transport
        self.decoder = decoder or ResponsesDecoder()
        self._source: AsyncIterator[bytes | str] | None = None
        self._failure: BaseException | None = None
        self._closed = False

    def _open_source(self) -> AsyncIterator[bytes | str]:
        transport = self.transport
        if hasattr(transport, "aiter_bytes"):
            return transport.aiter_bytes().__aiter__()
        return transport.__aiter__()

    async def next(self) -> StreamChunk | None:
        """Return the next chunk, or ``None`` once the stream is over."""
        if self._failure is not None:
            raise TransportError("Stream reader already failed") from self._failure
        if self._closed:
            return None
        while True:
            chunk = self.decoder.next_chunk()
            if chunk is not None:
                return chunk
            if self.decoder.input_ended:
                return None
            if self._source is None:
                self._source = self._open_source()
            try:
                data = await self._source.__anext__()
            except StopAsyncIteration:
                logger.debug("Response stream reached end of input")
                self.decoder.end_input()
                continue
            except TRANSPORT_ERRORS as exc:
                self._failure = exc
                raise TransportError(
                    f"Failed to read response stream: {exc}"
                ) from exc
            self.decoder.feed(data)

    async def __aiter__(self) -> AsyncIterator[StreamChunk]:
        async with astream_span() as span:
            while True:
                try:
                    chunk = await self.next()
                except TransportError as exc:
                    record_error(span, exc)
                    raise
                if chunk is None:
                    return
                _trace_chunk(span, chunk)
                yield chunk

    async def close(self) -> None:
        """Close the underlying transport."""
        if self._closed:
            return
        self._closed = True
        close = getattr(self.transport, "aclose", None) or getattr(
            self.transport, "close", None
        )
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result

    async def __aenter__(self) -> AsyncStreamReader:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
