"""Tests for the event-stream readers (sync and async)."""

import io
import json

import httpx
import pytest
from pydantic import BaseModel

from chatstream.core.errors import (
    APIError,
    EndOfStream,
    StreamDecodeError,
    TooManyEmptyStreamMessages,
)
from chatstream.stream.lines import FileLineSource
from chatstream.stream.reader import AsyncStreamReader, StreamReader


class Chunk(BaseModel):
    id: str


class RecordingSource:
    """Line source over a list; items that are exceptions are raised when reached."""

    def __init__(self, items):
        self._items = list(items)
        self.reads = 0
        self.closed = 0

    def read_line(self):
        self.reads += 1
        if not self._items:
            raise EOFError("exhausted")
        item = self._items.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self):
        self.closed += 1


class AsyncRecordingSource(RecordingSource):
    async def read_line(self):
        return super().read_line()

    async def close(self):
        super().close()


def _reader(body: bytes, **kwargs) -> StreamReader:
    return StreamReader(FileLineSource(io.BytesIO(body)), Chunk, **kwargs)


def test_decodes_event_then_done():
    stream = _reader(b'data: {"id":"1"}\ndata: [DONE]\n')
    assert stream.recv() == Chunk(id="1")
    with pytest.raises(EndOfStream):
        stream.recv()
    assert stream.finished is True


def test_after_done_no_further_reads():
    source = RecordingSource([b"data: [DONE]\n", b'data: {"id":"late"}\n'])
    stream = StreamReader(source, Chunk)
    with pytest.raises(EndOfStream):
        stream.recv()
    for _ in range(3):
        with pytest.raises(EndOfStream):
            stream.recv()
    assert source.reads == 1


def test_blank_lines_between_events_are_skipped():
    stream = _reader(b'data: {"id":"1"}\n\ndata: {"id":"2"}\n\ndata: [DONE]\n\n')
    assert [c.id for c in stream] == ["1", "2"]


def test_surrounding_whitespace_is_trimmed():
    stream = _reader(b'   data: {"id":"2"}  \r\ndata: [DONE]\r\n')
    assert stream.recv().id == "2"


def test_error_body_without_prefix_raises_api_error():
    stream = _reader(b'{"error":{"message":"bad request"}}\n')
    with pytest.raises(APIError, match="bad request") as exc_info:
        stream.recv()
    assert exc_info.value.message == "bad request"
    assert isinstance(exc_info.value.__cause__, EOFError)


def test_multiline_error_body_is_reassembled():
    body = b'{\n  "error": {\n    "message": "rate limited",\n    "type": "requests"\n  }\n}\n'
    stream = _reader(body)
    with pytest.raises(APIError) as exc_info:
        stream.recv()
    assert exc_info.value.message == "rate limited"
    assert exc_info.value.type == "requests"


def test_too_many_empty_messages():
    stream = _reader(b'\n\n\ndata: {"id":"1"}\n', empty_messages_limit=2)
    with pytest.raises(TooManyEmptyStreamMessages):
        stream.recv()


def test_empty_messages_up_to_limit_are_tolerated():
    stream = _reader(b'\n\ndata: {"id":"1"}\n', empty_messages_limit=2)
    assert stream.recv().id == "1"


def test_empty_message_count_resets_per_recv():
    stream = _reader(b'\n\ndata: {"id":"1"}\n\n\ndata: {"id":"2"}\n', empty_messages_limit=2)
    assert stream.recv().id == "1"
    assert stream.recv().id == "2"


def test_invalid_payload_raises_decode_error():
    stream = _reader(b"data: {not valid json\n")
    with pytest.raises(StreamDecodeError) as exc_info:
        stream.recv()
    assert not isinstance(exc_info.value, APIError)
    assert exc_info.value.payload == b"{not valid json"


def test_inline_error_line_raises_api_error():
    stream = _reader(b'data: {"error":{"message":"quota exceeded","code":429}}\ndata: [DONE]\n')
    with pytest.raises(APIError) as exc_info:
        stream.recv()
    assert exc_info.value.message == "quota exceeded"
    assert exc_info.value.code == 429
    assert stream.accumulated == b'{"error":{"message":"quota exceeded","code":429}}'


def test_inline_error_line_then_eof():
    stream = _reader(b'data: {"error":{"message":"boom"}}\n')
    with pytest.raises(APIError, match="boom"):
        stream.recv()


def test_inline_error_unreadable_body():
    stream = _reader(b'data: {"error": oops\ndata: [DONE]\n')
    with pytest.raises(StreamDecodeError):
        stream.recv()


def test_inline_detection_disabled_decodes_error_as_event():
    source = FileLineSource(io.BytesIO(b'data: {"error":{"message":"x"}}\ndata: [DONE]\n'))
    stream = StreamReader(source, decode=json.loads, detect_inline_errors=False)
    assert stream.recv() == {"error": {"message": "x"}}
    with pytest.raises(EndOfStream):
        stream.recv()


def test_accumulator_persists_across_recv_calls():
    stream = _reader(b'{"error":{"message":"late failure"}}\ndata: {"id":"1"}\n')
    assert stream.recv().id == "1"
    with pytest.raises(APIError, match="late failure"):
        stream.recv()


def test_eof_without_done_or_error_body_propagates_read_error():
    stream = _reader(b'data: {"id":"1"}\n: keep-alive\n')
    assert stream.recv().id == "1"
    with pytest.raises(EOFError) as exc_info:
        stream.recv()
    assert not isinstance(exc_info.value, EndOfStream)


def test_failed_stream_behaves_as_finished():
    source = RecordingSource([b"data: {broken\n", b'data: {"id":"1"}\n'])
    stream = StreamReader(source, Chunk)
    with pytest.raises(StreamDecodeError):
        stream.recv()
    with pytest.raises(EndOfStream):
        stream.recv()
    assert source.reads == 1


def test_transport_error_propagates_unchanged():
    err = httpx.ReadError("connection reset")
    stream = StreamReader(RecordingSource([err]), Chunk)
    with pytest.raises(httpx.ReadError) as exc_info:
        stream.recv()
    assert exc_info.value is err


def test_transport_error_with_error_body_raises_api_error():
    source = RecordingSource(
        [b'{"error": {"message": "server overloaded"}}\n', httpx.ReadError("reset")]
    )
    stream = StreamReader(source, Chunk)
    with pytest.raises(APIError, match="server overloaded") as exc_info:
        stream.recv()
    assert isinstance(exc_info.value.__cause__, httpx.ReadError)


def test_envelope_without_error_detail_propagates_read_error():
    stream = _reader(b'{"error": null}\n')
    with pytest.raises(EOFError):
        stream.recv()


def test_context_manager_closes_source_once():
    source = RecordingSource([b"data: [DONE]\n"])
    with StreamReader(source, Chunk) as stream:
        assert list(stream) == []
        stream.close()
    assert source.closed == 1


def test_requires_model_or_decoder():
    with pytest.raises(TypeError):
        StreamReader(RecordingSource([]))


def test_many_events_terminate_exactly_once():
    lines = [f'data: {{"id":"{i}"}}\n'.encode() for i in range(50)]
    source = RecordingSource(lines + [b"data: [DONE]\n"])
    stream = StreamReader(source, Chunk)
    assert [c.id for c in stream] == [str(i) for i in range(50)]
    assert list(stream) == []
    assert source.reads == 51


@pytest.mark.asyncio
async def test_async_reader_decodes_and_finishes():
    source = AsyncRecordingSource([b'data: {"id":"1"}\n', b"\n", b"data: [DONE]\n"])
    stream = AsyncStreamReader(source, Chunk)
    assert (await stream.recv()).id == "1"
    with pytest.raises(EndOfStream):
        await stream.recv()
    with pytest.raises(EndOfStream):
        await stream.recv()
    assert source.reads == 3


@pytest.mark.asyncio
async def test_async_reader_iteration_and_close():
    source = AsyncRecordingSource([b'data: {"id":"a"}\n', b'data: {"id":"b"}\n', b"data: [DONE]\n"])
    async with AsyncStreamReader(source, Chunk) as stream:
        ids = [c.id async for c in stream]
    assert ids == ["a", "b"]
    assert source.closed == 1


@pytest.mark.asyncio
async def test_async_reader_error_body():
    source = AsyncRecordingSource([b'{"error":{"message":"bad request"}}\n'])
    stream = AsyncStreamReader(source, Chunk)
    with pytest.raises(APIError, match="bad request"):
        await stream.recv()
    with pytest.raises(EndOfStream):
        await stream.recv()


@pytest.mark.asyncio
async def test_async_reader_too_many_empty_messages():
    source = AsyncRecordingSource([b"\n", b"\n", b"\n"])
    stream = AsyncStreamReader(source, Chunk, empty_messages_limit=2)
    with pytest.raises(TooManyEmptyStreamMessages):
        await stream.recv()
