"""Splits a Server-Sent Events byte stream into records.

Records are separated by a blank line.  Only the first ``data:`` line of
a record is its payload, with one optional space after the colon;
``event:``, ``id:`` and comment lines are ignored.  CR, LF and CRLF all
end a line.  The ``[DONE]`` sentinel marks a graceful end and carries no
payload.
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"
RECORD_SEPARATOR = "\n\n"


@dataclass
class RawRecord:
    """One framed record from the stream."""

    data: str


class EventFramer:
    """Accumulates stream input and pops complete records."""

    def __init__(
        self,
        data_prefix: str = DATA_PREFIX,
        done_sentinel: str = DONE_SENTINEL,
    ) -> None:
        self.data_prefix = data_prefix
        self.done_sentinel = done_sentinel
        self._buffer = ""
        self._pending_cr = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def buffered(self) -> str:
        """Input received but not yet framed into a record."""
        return self._buffer

    def feed(self, data: bytes | str) -> None:
        if isinstance(data, bytes):
            data = self._utf8.decode(data)
        if not data:
            return
        self._buffer += self._normalize(data)

    def _normalize(self, text: str) -> str:
        # A trailing CR may be the first half of a CRLF split across feeds.
        text = self._pending_cr + text
        self._pending_cr = ""
        if text.endswith("\r"):
            text = text[:-1]
            self._pending_cr = "\r"
        return text.replace("\r\n", "\n").replace("\r", "\n")

    def next_record(self) -> RawRecord | None:
        """Return the next complete record carrying a payload.

        Returns ``None`` when the buffer holds no further complete record.
        """
        while True:
            block, sep, rest = self._buffer.partition(RECORD_SEPARATOR)
            if not sep:
                return None
            self._buffer = rest
            data = self.extract_data(block)
            if not data:
                continue
            if data == self.done_sentinel:
                logger.debug("End-of-stream sentinel received")
                continue
            return RawRecord(data=data)

    def extract_data(self, block: str) -> str | None:
        """Return the value of the first data line, minus one leading space."""
        for line in block.split("\n"):
            if line.startswith(self.data_prefix):
                value = line[len(self.data_prefix):]
                return value[1:] if value.startswith(" ") else value
        return None

    def close(self) -> str:
        """Discard any incomplete trailing input and return it."""
        tail = self._pending_cr + self._utf8.decode(b"", final=True)
        remaining = self._buffer + tail.replace("\r", "\n")
        self._buffer = ""
        self._pending_cr = ""
        if remaining.strip():
            logger.warning(
                "Stream ended with an incomplete record in the buffer "
                "(%d chars discarded)", len(remaining),
            )
        return remaining
