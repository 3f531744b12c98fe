from deltaweave.decoder import ResponsesDecoder
from deltaweave.errors import (
    APIError,
    DecodeError,
    DeltaweaveError,
    TransportError,
    parse_api_error,
)
from deltaweave.framing import EventFramer, RawRecord
from deltaweave.instrumentation import instrument, uninstrument
from deltaweave.reader import AsyncStreamReader, StreamReader
from deltaweave.response import (
    CompletionResponse,
    acollect_stream,
    collect_stream,
    completion_from_response,
)
from deltaweave.streaming import (
    CompletionChunk,
    FinishReason,
    StreamChunk,
    TextChunk,
    TokenUsage,
    ToolCall,
    ToolCallChunk,
)
