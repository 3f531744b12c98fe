"""Streaming primitives for decoded responses.

Readers yield :class:`StreamChunk` objects.  The :class:`TextAccumulator`
keeps text reported both as deltas and as snapshots from being delivered
twice, and the :class:`ToolCallAssembler` reassembles tool calls whose
identifiers, name and arguments arrive across several events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class FinishReason(str, Enum):
    STOP = "stop"
    TOOL_CALLS = "tool_calls"
    LENGTH = "length"
    ERROR = "error"


@dataclass
class TokenUsage:
    """Token totals for one response."""

    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ToolCall:
    """A resolved tool call ready for the transcript."""

    id: str = ""
    name: str = ""
    arguments: str = ""


@dataclass
class StreamChunk:
    """Base for all decoded chunks."""


@dataclass
class TextChunk(StreamChunk):
    """Newly generated text, never repeated by a later chunk."""

    content: str = ""


@dataclass
class ToolCallChunk(StreamChunk):
    """A tool call whose id, name and arguments are all known."""

    call_id: str = ""
    name: str = ""
    arguments: str = ""

    def to_tool_call(self) -> ToolCall:
        return ToolCall(id=self.call_id, name=self.name, arguments=self.arguments)


@dataclass
class CompletionChunk(StreamChunk):
    """Final chunk of a response, always the last chunk yielded.

    ``content`` holds text that only appeared in the final response
    snapshot, if any.
    """

    finish_reason: FinishReason = FinishReason.STOP
    usage: TokenUsage | None = None
    content: str = ""


class TextAccumulator:
    """Merges delta and snapshot reports of the same text."""

    def __init__(self) -> None:
        self.text = ""

    def append(self, delta: str) -> str | None:
        if not delta:
            return None
        self.text += delta
        return delta

    def reconcile(self, snapshot: str) -> str | None:
        """Return the part of *snapshot* not yet delivered.

        Snapshots that are not a strict extension of the delivered text
        are dropped.
        """
        if len(snapshot) > len(self.text) and snapshot.startswith(self.text):
            suffix = snapshot[len(self.text):]
            self.text = snapshot
            return suffix
        if not self.text.startswith(snapshot):
            logger.debug(
                "Dropping text snapshot that does not extend the "
                "streamed text (%d chars)", len(snapshot),
            )
        return None


@dataclass
class ToolCallRecord:
    """Everything known so far about one tool invocation."""

    item_key: str = ""
    call_key: str = ""
    name: str = ""
    arguments: str = ""
    delivered: bool = False

    @property
    def ready(self) -> bool:
        return bool(self.call_key and self.name and self.arguments)


class ToolCallAssembler:
    """Assembles complete tool calls from fragments keyed by two ids.

    Records live in an append-only arena.  ``item_id`` and ``call_id``
    index the same slot, so a fragment carrying either id reaches the
    same record.  Fragments carrying neither fall back to their output
    position.  When an event links two slots that were started under
    different ids, they are merged into one.
    """

    def __init__(self) -> None:
        self.records: list[ToolCallRecord] = []
        self._by_item: dict[str, int] = {}
        self._by_call: dict[str, int] = {}
        self._by_position: dict[int, int] = {}
        self._merged: set[int] = set()

    def resolve(
        self,
        item_id: str | None = None,
        call_id: str | None = None,
        output_index: int | None = None,
    ) -> ToolCallRecord:
        item_slot = self._by_item.get(item_id) if item_id else None
        call_slot = self._by_call.get(call_id) if call_id else None
        if item_slot is not None and call_slot is not None and item_slot != call_slot:
            if self._can_merge(item_slot, call_slot, item_id, call_id):
                self._merge(item_slot, call_slot)
            else:
                # call_id already belongs to another invocation
                call_id = None

        slot = item_slot if item_slot is not None else call_slot
        if slot is None and output_index is not None:
            slot = self._position_slot(output_index, item_id, call_id)
        if slot is None:
            slot = len(self.records)
            self.records.append(ToolCallRecord())

        self._backfill(slot, item_id, call_id)
        if output_index is not None:
            self._by_position.setdefault(output_index, slot)
        return self.records[slot]

    def _position_slot(
        self, output_index: int, item_id: str | None, call_id: str | None
    ) -> int | None:
        slot = self._by_position.get(output_index)
        if slot is None:
            return None
        record = self.records[slot]
        if item_id and record.item_key and record.item_key != item_id:
            return None
        if call_id and record.call_key and record.call_key != call_id:
            return None
        return slot

    def _can_merge(
        self, item_slot: int, call_slot: int, item_id: str, call_id: str
    ) -> bool:
        by_item = self.records[item_slot]
        by_call = self.records[call_slot]
        if by_item.call_key and by_item.call_key != call_id:
            return False
        if by_call.item_key and by_call.item_key != item_id:
            return False
        return True

    def _merge(self, slot: int, other: int) -> None:
        """Fold the record at *other* into the record at *slot*.

        Fields already set on the surviving record win.  A delivered
        half keeps the merged record delivered.
        """
        record = self.records[slot]
        absorbed = self.records[other]
        record.item_key = record.item_key or absorbed.item_key
        record.call_key = record.call_key or absorbed.call_key
        record.name = record.name or absorbed.name
        record.arguments = record.arguments or absorbed.arguments
        record.delivered = record.delivered or absorbed.delivered

        for index in (self._by_item, self._by_call, self._by_position):
            for key, value in index.items():
                if value == other:
                    index[key] = slot
        self._merged.add(other)
        logger.debug(
            "Merged tool call records (item=%r, call=%r)",
            record.item_key, record.call_key,
        )

    def _backfill(
        self, slot: int, item_id: str | None, call_id: str | None
    ) -> None:
        record = self.records[slot]
        if item_id and not record.item_key:
            record.item_key = item_id
            self._by_item.setdefault(item_id, slot)
        if call_id and not record.call_key:
            record.call_key = call_id
            self._by_call.setdefault(call_id, slot)

    def append_arguments(
        self, record: ToolCallRecord, delta: str
    ) -> ToolCallChunk | None:
        """Buffer an argument fragment.

        Returns a chunk if the fragment completes the record.
        """
        if delta:
            record.arguments += delta
        return self.update(record)

    def update(
        self,
        record: ToolCallRecord,
        name: str | None = None,
        arguments: str | None = None,
    ) -> ToolCallChunk | None:
        """Apply a name or final arguments.

        Returns a chunk the first time the record holds a call id, a name
        and arguments; ``None`` otherwise and ever after.
        """
        if name:
            record.name = name
        if arguments:
            record.arguments = arguments
        if record.delivered or not record.ready:
            return None
        record.delivered = True
        return ToolCallChunk(
            call_id=record.call_key,
            name=record.name,
            arguments=record.arguments,
        )

    def _live(self) -> list[ToolCallRecord]:
        return [
            record for slot, record in enumerate(self.records)
            if slot not in self._merged
        ]

    @property
    def any_delivered(self) -> bool:
        return any(record.delivered for record in self._live())

    def pending(self) -> list[ToolCallRecord]:
        """Records that have not been delivered."""
        return [record for record in self._live() if not record.delivered]
