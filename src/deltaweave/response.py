"""Whole-response views of a completion.

:func:`collect_stream` drains a reader into a :class:`CompletionResponse`;
:func:`completion_from_response` builds the same structure from a
non-streaming Responses API object.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable
from dataclasses import dataclass, field

from deltaweave.decoder import usage_from
from deltaweave.events import ResponseSnapshot, parse_response
from deltaweave.streaming import (
    CompletionChunk,
    FinishReason,
    StreamChunk,
    TextChunk,
    TokenUsage,
    ToolCall,
    ToolCallChunk,
)


@dataclass
class CompletionResponse:
    """The complete result of one model response."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: FinishReason | None = None
    usage: TokenUsage | None = None
    id: str = ""
    model: str = ""

    @property
    def complete(self) -> bool:
        """True if the stream reached its terminal event."""
        return self.finish_reason is not None


def _apply(result: CompletionResponse, chunk: StreamChunk) -> None:
    if isinstance(chunk, TextChunk):
        result.content += chunk.content
    elif isinstance(chunk, ToolCallChunk):
        result.tool_calls.append(chunk.to_tool_call())
    elif isinstance(chunk, CompletionChunk):
        result.content += chunk.content
        result.finish_reason = chunk.finish_reason
        result.usage = chunk.usage


def collect_stream(chunks: Iterable[StreamChunk]) -> CompletionResponse:
    """Accumulate every chunk of a stream into one response."""
    result = CompletionResponse()
    for chunk in chunks:
        _apply(result, chunk)
    return result


async def acollect_stream(
    chunks: AsyncIterable[StreamChunk],
) -> CompletionResponse:
    """Async version of :func:`collect_stream`."""
    result = CompletionResponse()
    async for chunk in chunks:
        _apply(result, chunk)
    return result


def completion_from_response(
    data: ResponseSnapshot | dict | str | bytes,
) -> CompletionResponse:
    """Convert a non-streaming Responses API object.

    Function calls without a ``call_id`` are dropped, matching the
    streaming path.

    Raises:
        DecodeError: If *data* is not a valid response object.
    """
    snapshot = data if isinstance(data, ResponseSnapshot) else parse_response(data)
    result = CompletionResponse(
        content=snapshot.output_text(),
        usage=usage_from(snapshot.usage),
        id=snapshot.id,
        model=snapshot.model,
    )
    for item in snapshot.items:
        if item.is_function_call and item.call_id:
            result.tool_calls.append(ToolCall(
                id=item.call_id,
                name=item.name or "",
                arguments=item.arguments or "",
            ))

    if snapshot.error is not None:
        result.finish_reason = FinishReason.ERROR
    elif snapshot.status == "incomplete":
        result.finish_reason = FinishReason.LENGTH
    elif snapshot.status == "completed":
        if result.tool_calls:
            result.finish_reason = FinishReason.TOOL_CALLS
        else:
            result.finish_reason = FinishReason.STOP
    return result
