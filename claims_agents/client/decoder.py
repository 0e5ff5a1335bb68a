"""Incremental SSE decoder that rebuilds chat state from raw bytes."""

from __future__ import annotations

import codecs
import json
import logging
from typing import Callable, List, Optional

from ..errors import EventDecodeError
from ..events import Event, decode_payload, is_terminal
from .state import ChatState

logger = logging.getLogger(__name__)

EventCallback = Callable[[Event], None]


class StreamDecoder:
    """Feeds an event stream, split at arbitrary byte boundaries, into a ChatState.

    Bytes are decoded with an incremental UTF-8 decoder, so a multi-byte
    character split across chunks is reassembled. Only complete lines are
    interpreted; a partial trailing line waits for the next chunk. Frames that
    are not valid JSON or cannot be classified are counted and skipped.

    Example:
        decoder = StreamDecoder()
        async for chunk in response.aiter_bytes():
            decoder.feed(chunk)
        decoder.close()
        print(decoder.state.messages[-1].content)
    """

    def __init__(self, state: Optional[ChatState] = None, on_event: Optional[EventCallback] = None) -> None:
        self.state = state if state is not None else ChatState()
        self.on_event = on_event
        self.events: List[Event] = []
        self.ignored = 0
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._event_name: Optional[str] = None

    @property
    def terminated(self) -> bool:
        """True once a Done or Error event has been decoded."""
        return any(is_terminal(event) for event in self.events)

    def feed(self, chunk: bytes) -> List[Event]:
        """Consume a chunk and return the events it completed."""
        self._buffer += self._utf8.decode(chunk)
        if "\n" not in self._buffer:
            return []
        *lines, self._buffer = self._buffer.split("\n")
        decoded = []
        for line in lines:
            event = self._handle_line(line.rstrip("\r"))
            if event is not None:
                decoded.append(event)
        return decoded

    def close(self) -> List[Event]:
        """Flush the decoder at end of stream, interpreting any unterminated last line."""
        self._buffer += self._utf8.decode(b"", final=True)
        line, self._buffer = self._buffer, ""
        if not line:
            return []
        event = self._handle_line(line.rstrip("\r"))
        return [event] if event is not None else []

    def _handle_line(self, line: str) -> Optional[Event]:
        if not line:
            self._event_name = None
            return None
        if line.startswith("event:"):
            self._event_name = line[6:].strip() or None
            return None
        if not line.startswith("data:"):
            return None

        data = line[5:]
        if data.startswith(" "):
            data = data[1:]
        try:
            payload = json.loads(data)
            event = decode_payload(payload, hint=self._event_name)
        except (ValueError, EventDecodeError) as e:
            self.ignored += 1
            logger.debug("Ignoring frame %r: %s", data[:80], e)
            return None

        self.events.append(event)
        self.state.apply(event)
        if self.on_event is not None:
            self.on_event(event)
        return event
