"""Server-Sent Events adapter for decoded chunks."""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import asdict

from deltaweave.streaming import StreamChunk


def format_sse(chunk: StreamChunk) -> str:
    """Render one chunk as an SSE record."""
    event_type = type(chunk).__name__
    data = json.dumps(asdict(chunk))
    return f"event: {event_type}\ndata: {data}\n\n"


async def sse_generator(
    chunks: AsyncIterable[StreamChunk],
) -> AsyncIterator[str]:
    """Convert a chunk async iterator into SSE-formatted strings."""
    async for chunk in chunks:
        yield format_sse(chunk)
    yield "event: done\ndata: {}\n\n"
