"""Incremental decoder for ``text/event-stream`` response bodies.

Streamable MCP servers answer a POST with server-sent events; the JSON-RPC
response rides in the ``data`` field of one of them.  Text arrives in
arbitrary chunks, so lines and events are reassembled across chunk
boundaries before they are handed out.
"""

from __future__ import annotations

from dataclasses import dataclass

DONE_SENTINEL = "[DONE]"


@dataclass(slots=True)
class SseEvent:
    data: str = ""
    event: str = "message"
    id: str | None = None

    @property
    def is_done(self) -> bool:
        return self.data.strip() == DONE_SENTINEL


class SseDecoder:
    """Feed text chunks, collect complete events.

    Comment lines (``: keep-alive``) and events without data are dropped.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._data: list[str] = []
        self._event: str | None = None
        self._id: str | None = None

    def feed(self, chunk: str) -> list[SseEvent]:
        self._buffer += chunk
        events: list[SseEvent] = []
        while True:
            newline = self._buffer.find("\n")
            if newline < 0:
                break
            line = self._buffer[:newline].rstrip("\r")
            self._buffer = self._buffer[newline + 1:]
            event = self._feed_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[SseEvent]:
        """Dispatch whatever is pending once the stream has ended."""
        events: list[SseEvent] = []
        if self._buffer:
            line, self._buffer = self._buffer.rstrip("\r"), ""
            event = self._feed_line(line)
            if event is not None:
                events.append(event)
        event = self._dispatch()
        if event is not None:
            events.append(event)
        return events

    def _feed_line(self, line: str) -> SseEvent | None:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "data":
            self._data.append(value)
        elif field == "event":
            self._event = value
        elif field == "id":
            self._id = value
        # "retry" and unknown fields are ignored
        return None

    def _dispatch(self) -> SseEvent | None:
        if not self._data:
            self._event = None
            return None
        event = SseEvent(data="\n".join(self._data), event=self._event or "message", id=self._id)
        self._data = []
        self._event = None
        return event
