"""Unit tests for the SSE adapter."""

import json

import pytest

from deltaweave.sse import format_sse, sse_generator
from deltaweave.streaming import (
    CompletionChunk,
    FinishReason,
    TextChunk,
    ToolCallChunk,
)


async def _agen(items):
    for item in items:
        yield item


class TestFormatSSE:
    def test_text_chunk(self):
        assert format_sse(TextChunk(content="Hi")) == (
            'event: TextChunk\ndata: {"content": "Hi"}\n\n'
        )

    def test_completion_chunk_serializes_enum_and_usage(self):
        record = format_sse(CompletionChunk(finish_reason=FinishReason.TOOL_CALLS))
        lines = record.strip().split("\n")

        assert lines[0] == "event: CompletionChunk"
        data = json.loads(lines[1].removeprefix("data: "))
        assert data == {"finish_reason": "tool_calls", "usage": None, "content": ""}


class TestSSEGenerator:
    @pytest.mark.asyncio
    async def test_yields_records_then_done(self):
        chunks = [
            TextChunk(content="a"),
            ToolCallChunk(call_id="c1", name="n", arguments="{}"),
        ]

        records = [r async for r in sse_generator(_agen(chunks))]

        assert len(records) == 3
        assert records[0].startswith("event: TextChunk\n")
        assert records[1].startswith("event: ToolCallChunk\n")
        assert records[2] == "event: done\ndata: {}\n\n"

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        records = [r async for r in sse_generator(_agen([]))]
        assert records == ["event: done\ndata: {}\n\n"]
