"""Typed envelopes for Responses API stream events.

Every record payload is a JSON object whose ``type`` names the event.
:func:`parse_event` validates it into exactly one :class:`StreamEnvelope`
subclass through a discriminated union; types outside the known set
become :class:`UnknownEvent` rather than errors.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, ClassVar, Union

from pydantic import (
    BaseModel,
    Discriminator,
    Tag,
    TypeAdapter,
    ValidationError,
)

from deltaweave.errors import DecodeError

FUNCTION_CALL = "function_call"
MESSAGE = "message"
OUTPUT_TEXT = "output_text"


class EventKind(str, Enum):
    TEXT_DELTA = "text_delta"
    TEXT_DONE = "text_done"
    ITEM_ADDED = "item_added"
    ITEM_DONE = "item_done"
    CONTENT_PART_DELTA = "content_part_delta"
    CONTENT_PART_DONE = "content_part_done"
    ARGUMENTS_DELTA = "arguments_delta"
    ARGUMENTS_DONE = "arguments_done"
    TERMINAL = "terminal"
    UNKNOWN = "unknown"


EVENT_TYPES: dict[str, EventKind] = {
    "response.output_text.delta": EventKind.TEXT_DELTA,
    "response.output_text.done": EventKind.TEXT_DONE,
    "response.output_item.added": EventKind.ITEM_ADDED,
    "response.output_item.done": EventKind.ITEM_DONE,
    "response.content_part.added": EventKind.CONTENT_PART_DELTA,
    "response.content_part.delta": EventKind.CONTENT_PART_DELTA,
    "response.content_part.done": EventKind.CONTENT_PART_DONE,
    "response.function_call_arguments.delta": EventKind.ARGUMENTS_DELTA,
    "response.function_call_arguments.done": EventKind.ARGUMENTS_DONE,
    "response.done": EventKind.TERMINAL,
    "response.completed": EventKind.TERMINAL,
}


# ---------------------------------------------------------------------------
# Payload pieces
# ---------------------------------------------------------------------------

class OutputContent(BaseModel):
    """A content part of a message item."""

    type: str = ""
    text: str | None = None


class OutputItem(BaseModel):
    """An entry of a response's ``output`` list."""

    type: str = ""
    id: str | None = None
    call_id: str | None = None
    name: str | None = None
    arguments: str | None = None
    status: str | None = None
    role: str | None = None
    content: list[OutputContent] | None = None

    @property
    def is_function_call(self) -> bool:
        return self.type == FUNCTION_CALL

    def output_text(self) -> str:
        """Concatenated ``output_text`` parts; empty for non-messages."""
        if self.type != MESSAGE or not self.content:
            return ""
        return "".join(
            part.text for part in self.content
            if part.type == OUTPUT_TEXT and part.text
        )


class TokenDetails(BaseModel):
    cached_tokens: int = 0
    reasoning_tokens: int = 0


class Usage(BaseModel):
    """Token accounting as reported by the provider."""

    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0
    total_tokens: int = 0
    output_tokens_details: TokenDetails | None = None

    @property
    def effective_reasoning_tokens(self) -> int:
        if self.reasoning_tokens:
            return self.reasoning_tokens
        if self.output_tokens_details is not None:
            return self.output_tokens_details.reasoning_tokens
        return 0


class ResponseError(BaseModel):
    code: Any = None
    message: str = ""
    type: str | None = None


class ResponseSnapshot(BaseModel):
    """A full response object, as carried by terminal events."""

    id: str = ""
    status: str = ""
    model: str = ""
    output: list[OutputItem] | None = None
    usage: Usage | None = None
    error: ResponseError | None = None

    @property
    def items(self) -> list[OutputItem]:
        return self.output or []

    def output_text(self) -> str:
        return "".join(item.output_text() for item in self.items)


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------

class StreamEnvelope(BaseModel):
    """Fields shared by every stream event."""

    kind: ClassVar[EventKind]

    type: str = ""
    sequence_number: int | None = None
    response_id: str | None = None
    output_index: int | None = None


class TextDelta(StreamEnvelope):
    kind: ClassVar[EventKind] = EventKind.TEXT_DELTA
    delta: str = ""


class TextDone(StreamEnvelope):
    """Full text generated so far."""

    kind: ClassVar[EventKind] = EventKind.TEXT_DONE
    text: str = ""


class _ItemEvent(StreamEnvelope):
    item: OutputItem | None = None


class ItemAdded(_ItemEvent):
    kind: ClassVar[EventKind] = EventKind.ITEM_ADDED


class ItemDone(_ItemEvent):
    kind: ClassVar[EventKind] = EventKind.ITEM_DONE


class _PartEvent(StreamEnvelope):
    item_id: str | None = None
    part: OutputContent | None = None

    def output_text(self) -> str:
        if self.part is None or self.part.type != OUTPUT_TEXT:
            return ""
        return self.part.text or ""


class ContentPartDelta(_PartEvent):
    kind: ClassVar[EventKind] = EventKind.CONTENT_PART_DELTA


class ContentPartDone(_PartEvent):
    kind: ClassVar[EventKind] = EventKind.CONTENT_PART_DONE


class ArgumentsDelta(StreamEnvelope):
    kind: ClassVar[EventKind] = EventKind.ARGUMENTS_DELTA
    item_id: str | None = None
    call_id: str | None = None
    delta: str = ""


class ArgumentsDone(StreamEnvelope):
    kind: ClassVar[EventKind] = EventKind.ARGUMENTS_DONE
    item_id: str | None = None
    call_id: str | None = None
    name: str | None = None
    arguments: str = ""


class ResponseTerminal(StreamEnvelope):
    """End of the response, optionally with usage and a full snapshot."""

    kind: ClassVar[EventKind] = EventKind.TERMINAL
    usage: Usage | None = None
    response: ResponseSnapshot | None = None


class UnknownEvent(StreamEnvelope):
    kind: ClassVar[EventKind] = EventKind.UNKNOWN


def _event_tag(value: Any) -> str | None:
    if isinstance(value, StreamEnvelope):
        return value.kind.value
    if not isinstance(value, dict):
        return None
    raw_type = value.get("type")
    if not isinstance(raw_type, str):
        return EventKind.UNKNOWN.value
    return EVENT_TYPES.get(raw_type, EventKind.UNKNOWN).value


Envelope = Annotated[
    Union[
        Annotated[TextDelta, Tag(EventKind.TEXT_DELTA.value)],
        Annotated[TextDone, Tag(EventKind.TEXT_DONE.value)],
        Annotated[ItemAdded, Tag(EventKind.ITEM_ADDED.value)],
        Annotated[ItemDone, Tag(EventKind.ITEM_DONE.value)],
        Annotated[ContentPartDelta, Tag(EventKind.CONTENT_PART_DELTA.value)],
        Annotated[ContentPartDone, Tag(EventKind.CONTENT_PART_DONE.value)],
        Annotated[ArgumentsDelta, Tag(EventKind.ARGUMENTS_DELTA.value)],
        Annotated[ArgumentsDone, Tag(EventKind.ARGUMENTS_DONE.value)],
        Annotated[ResponseTerminal, Tag(EventKind.TERMINAL.value)],
        Annotated[UnknownEvent, Tag(EventKind.UNKNOWN.value)],
    ],
    Discriminator(_event_tag),
]

_envelope_adapter: TypeAdapter[StreamEnvelope] = TypeAdapter(Envelope)


def parse_event(payload: str | bytes) -> StreamEnvelope:
    """Decode one record payload into its envelope.

    Raises:
        DecodeError: If the payload is not valid JSON or does not fit the
            shape of its declared event type.
    """
    try:
        return _envelope_adapter.validate_json(payload)
    except ValidationError as exc:
        text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
        raise DecodeError(
            f"Malformed stream record ({exc.error_count()} error(s))",
            payload=text,
        ) from exc


def parse_response(data: str | bytes | dict) -> ResponseSnapshot:
    """Validate a complete (non-streaming) response object."""
    try:
        if isinstance(data, dict):
            return ResponseSnapshot.model_validate(data)
        return ResponseSnapshot.model_validate_json(data)
    except ValidationError as exc:
        raise DecodeError(
            f"Malformed response object ({exc.error_count()} error(s))",
        ) from exc


