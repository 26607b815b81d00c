import threading

import pytest

from freshsheet.agent.events import EventEmitter, QueueChannel, decode_sse, encode_sse
from freshsheet.agent.types import EventType, StreamEvent, ToolInvocation
from freshsheet.errors import ChannelClosedError


def test_encode_sse_block():
    block = encode_sse(StreamEvent.text("Hello"))
    assert block == 'event: text\ndata: {"text": "Hello"}\n\n'


def test_decode_sse_reads_back_events():
    inv = ToolInvocation(id="c1", name="get_inventory", input={})
    body = "".join(encode_sse(e) for e in [
        StreamEvent.tool_call(inv),
        StreamEvent.tool_result(inv, {"count": 0}),
        StreamEvent.done("conv-1"),
    ])
    events = decode_sse(body)
    assert [e.type for e in events] == [EventType.TOOL_CALL, EventType.TOOL_RESULT, EventType.DONE]
    assert events[1].data == {"id": "c1", "name": "get_inventory", "result": {"count": 0}}
    assert events[2].data == {"conversationId": "conv-1"}


def test_emitter_closes_after_terminal_event():
    seen, closes = [], []
    emitter = EventEmitter(seen.append, on_close=lambda: closes.append(True))
    emitter.emit(StreamEvent.text("a"))
    assert not emitter.closed
    emitter.emit(StreamEvent.error("boom"))
    assert emitter.closed
    assert closes == [True]

    with pytest.raises(ChannelClosedError):
        emitter.emit(StreamEvent.text("late"))
    emitter.close()
    assert closes == [True]
    assert [e.type for e in seen] == [EventType.TEXT, EventType.ERROR]


def test_queue_channel_hands_events_across_threads():
    channel = QueueChannel()
    emitter = EventEmitter(channel.push, on_close=channel.close)

    def produce():
        emitter.emit(StreamEvent.text("one"))
        emitter.emit(StreamEvent.text("two"))
        emitter.emit(StreamEvent.done("conv-1"))

    worker = threading.Thread(target=produce)
    worker.start()
    received = list(channel)
    worker.join()
    assert [e.data.get("text") for e in received[:2]] == ["one", "two"]
    assert received[-1].type == EventType.DONE
