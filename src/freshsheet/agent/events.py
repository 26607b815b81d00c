"""
Streaming protocol.

The loop pushes StreamEvents into an EventEmitter, which forwards them in
order to a single consumer and closes the channel exactly once, right after
the terminal ``done`` or ``error`` event. On the wire every event is a
server-sent-events block: ``event: <name>`` then ``data: <json>``.
"""
import json
import queue
from typing import Callable, Iterator, Optional

from freshsheet.agent.types import EventType, StreamEvent
from freshsheet.errors import ChannelClosedError


def encode_sse(event: StreamEvent) -> str:
    return f"event: {event.type.value}\ndata: {json.dumps(event.data, default=str)}\n\n"


def decode_sse(text: str) -> list:
    """Parse a buffered SSE body back into (event, data) pairs."""
    events = []
    for block in text.split("\n\n"):
        name = data = None
        for line in block.splitlines():
            if line.startswith("event: "):
                name = line[len("event: "):].strip()
            elif line.startswith("data: "):
                data = json.loads(line[len("data: "):])
        if name is not None:
            events.append(StreamEvent(EventType(name), data or {}))
    return events


class EventEmitter:
    """Ordered single-consumer push channel."""

    def __init__(self, sink: Callable[[StreamEvent], None], on_close: Optional[Callable[[], None]] = None):
        self._sink = sink
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: StreamEvent) -> None:
        if self._closed:
            raise ChannelClosedError(f"Cannot emit {event.type.value} after the stream closed")
        self._sink(event)
        if event.is_terminal:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()


_END = object()


class QueueChannel:
    """Thread-safe hand-off from a loop thread to the response iterator."""

    def __init__(self):
        self._queue: "queue.Queue" = queue.Queue()

    def push(self, event: StreamEvent) -> None:
        self._queue.put(event)

    def close(self) -> None:
        self._queue.put(_END)

    def __iter__(self) -> Iterator[StreamEvent]:
        while True:
            item = self._queue.get()
            if item is _END:
                return
            yield item
