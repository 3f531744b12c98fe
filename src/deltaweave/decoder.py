"""Protocol state machine for Responses API streams.

:class:`ResponsesDecoder` does no I/O.  Feed it bytes with :meth:`feed`,
signal the end of input with :meth:`end_input`, and pull chunks with
:meth:`next_chunk` until it returns ``None``.  One raw event can yield
several chunks, so derived chunks wait in a FIFO queue that is always
drained before more input is parsed.
"""

from __future__ import annotations

import logging
from collections import deque

from deltaweave.errors import DecodeError
from deltaweave.events import (
    ArgumentsDelta,
    ArgumentsDone,
    ContentPartDelta,
    ContentPartDone,
    ItemAdded,
    ItemDone,
    OutputItem,
    ResponseTerminal,
    TextDelta,
    TextDone,
    Usage,
    parse_event,
)
from deltaweave.framing import EventFramer
from deltaweave.streaming import (
    CompletionChunk,
    FinishReason,
    StreamChunk,
    TextAccumulator,
    TextChunk,
    TokenUsage,
    ToolCallAssembler,
)

logger = logging.getLogger(__name__)


def usage_from(usage: Usage | None) -> TokenUsage | None:
    if usage is None:
        return None
    return TokenUsage(
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        reasoning_tokens=usage.effective_reasoning_tokens,
        total_tokens=usage.total_tokens,
    )


class ResponsesDecoder:
    """Turns a Responses API event stream into :class:`StreamChunk` objects.

    A decoder serves exactly one stream and one consumer.

    Args:
        framer: Record framer to use; a default :class:`EventFramer` is
            created when omitted.
    """

    def __init__(self, framer: EventFramer | None = None):
        self.framer = framer or EventFramer()
        self.text = TextAccumulator()
        self.tool_calls = ToolCallAssembler()
        self._pending: deque[StreamChunk] = deque()
        self._finished = False
        self._input_ended = False
        self._closed = False
        self._handlers = {
            TextDelta: self._on_text_delta,
            TextDone: self._on_text_done,
            ItemAdded: self._on_item,
            ItemDone: self._on_item,
            ContentPartDelta: self._on_content_part,
            ContentPartDone: self._on_content_part,
            ArgumentsDelta: self._on_arguments_delta,
            ArgumentsDone: self._on_arguments_done,
            ResponseTerminal: self._on_terminal,
        }

    @property
    def finished(self) -> bool:
        """True once the terminal event has been processed."""
        return self._finished

    @property
    def input_ended(self) -> bool:
        return self._input_ended

    def feed(self, data: bytes | str) -> None:
        if self._input_ended:
            raise RuntimeError("feed() called after end_input()")
        self.framer.feed(data)

    def end_input(self) -> None:
        """Mark the input as complete.

        Records already buffered are still decoded; a trailing partial
        record is discarded once they have been pulled.
        """
        self._input_ended = True

    def next_chunk(self) -> StreamChunk | None:
        """Return the next chunk, or ``None`` if more input is needed.

        After :meth:`end_input`, ``None`` means the stream is over.
        """
        while not self._pending:
            record = self.framer.next_record()
            if record is None:
                if self._input_ended:
                    self._close_input()
                return None
            self._process(record.data)
        return self._pending.popleft()

    def _close_input(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.framer.close()
        for record in self.tool_calls.pending():
            logger.debug(
                "Dropping incomplete tool call (item=%r, call=%r, name=%r)",
                record.item_key, record.call_key, record.name,
            )

    def _process(self, payload: str) -> None:
        if self._finished:
            logger.debug("Ignoring record received after the terminal event")
            return
        try:
            envelope = parse_event(payload)
        except DecodeError as exc:
            logger.warning("Skipping malformed stream record: %s", exc)
            return
        handler = self._handlers.get(type(envelope))
        if handler is None:
            logger.debug("Ignoring stream event %r", envelope.type)
            return
        handler(envelope)

    def _emit_text(self, content: str | None) -> None:
        if content:
            self._pending.append(TextChunk(content=content))

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def _on_text_delta(self, event: TextDelta) -> None:
        self._emit_text(self.text.append(event.delta))

    def _on_text_done(self, event: TextDone) -> None:
        self._emit_text(self.text.reconcile(event.text))

    def _on_content_part(self, event: ContentPartDelta | ContentPartDone) -> None:
        self._emit_text(self.text.reconcile(event.output_text()))

    # ------------------------------------------------------------------
    # Tool calls
    # ------------------------------------------------------------------

    def _on_item(self, event: ItemAdded | ItemDone) -> None:
        item = event.item
        if item is None:
            return
        if item.is_function_call:
            self._store_tool_item(item, event.output_index)
        elif isinstance(event, ItemDone):
            self._emit_text(self.text.reconcile(item.output_text()))

    def _store_tool_item(self, item: OutputItem, output_index: int | None) -> bool:
        record = self.tool_calls.resolve(item.id, item.call_id, output_index)
        chunk = self.tool_calls.update(
            record, name=item.name, arguments=item.arguments,
        )
        if chunk is None:
            return False
        self._pending.append(chunk)
        return True

    def _on_arguments_delta(self, event: ArgumentsDelta) -> None:
        record = self.tool_calls.resolve(
            event.item_id, event.call_id, event.output_index,
        )
        chunk = self.tool_calls.append_arguments(record, event.delta)
        if chunk is not None:
            self._pending.append(chunk)

    def _on_arguments_done(self, event: ArgumentsDone) -> None:
        record = self.tool_calls.resolve(
            event.item_id, event.call_id, event.output_index,
        )
        chunk = self.tool_calls.update(
            record, name=event.name, arguments=event.arguments,
        )
        if chunk is not None:
            self._pending.append(chunk)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _on_terminal(self, event: ResponseTerminal) -> None:
        self._finished = True
        completion = CompletionChunk(finish_reason=FinishReason.STOP)
        if self.tool_calls.any_delivered:
            completion.finish_reason = FinishReason.TOOL_CALLS

        snapshot = event.response
        usage = event.usage
        if usage is None and snapshot is not None:
            usage = snapshot.usage
        completion.usage = usage_from(usage)

        if snapshot is not None:
            for position, item in enumerate(snapshot.items):
                if item.is_function_call and self._store_tool_item(item, position):
                    completion.finish_reason = FinishReason.TOOL_CALLS
            completion.content = self.text.reconcile(snapshot.output_text()) or ""

        self._pending.append(completion)
