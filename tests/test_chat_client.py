import io

import pytest

from promptstream.client.chat_client import PromptStreamClient
from promptstream.client.config import ClientConfig, PromptMode, RequestConfig
from promptstream.client.connection_manager import ConnectionManager
from promptstream.client.errors import TransportError
from promptstream.client.response_handler import ResponseHandler


ENDPOINT = "http://localhost:7000/v1/completions"


class ClosedSink(io.StringIO):
    def write(self, text):
        raise BrokenPipeError()


def make_client(session, sink):
    config = ClientConfig(endpoint=ENDPOINT)
    return PromptStreamClient(
        config,
        connection_manager=ConnectionManager(config, session=session),
        response_handler=ResponseHandler(sink=sink),
    )


def test_streams_fragments_to_sink(make_session):
    session = make_session(chunks=[
        b'data: {"choices":[{"text":" Hello"}]}\n',
        b'data: {"choices":[{"text":" world"}]}\n',
        b"data: [DONE]\n",
    ])
    sink = io.StringIO()
    result = make_client(session, sink).run(RequestConfig(system_prompt="Help.", user_segments=["Hi"]))
    assert result == "Hello world"
    assert sink.getvalue() == "Hello world"
    assert session.response.closed


def test_echo_precedes_output(make_session):
    session = make_session(chunks=[b'data: {"choices":[{"text":" Hello"}]}\ndata: [DONE]\n'])
    sink = io.StringIO()
    config = RequestConfig(system_prompt="Help.", user_segments=["Hi"], echo_prompt=True)
    make_client(session, sink).run(config)
    assert sink.getvalue() == "SYSTEM: Help.\nUSER: Hi\nASSISTANT:Hello"


def test_stops_reading_after_done(make_session):
    session = make_session(chunks=[
        b'data: {"choices":[{"text":"a"}]}\ndata: [DONE]\n',
        b'data: {"choices":[{"text":"b"}]}\n',
    ])
    sink = io.StringIO()
    make_client(session, sink).run(RequestConfig(user_segments=["Hi"]))
    assert sink.getvalue() == "a"
    assert session.response.chunks_read == 1
    assert session.response.closed


def test_chat_mode(make_session):
    session = make_session(chunks=[
        b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n',
        b'data: {"choices":[{"delta":{"content":" Sure"}}]}\n',
        b"data: [DONE]\n",
    ])
    sink = io.StringIO()
    config = RequestConfig(user_segments=["Hi"], mode=PromptMode.CHAT_MESSAGES)
    assert make_client(session, sink).run(config) == "Sure"


def test_closed_sink_tears_down_transport(make_session):
    session = make_session(chunks=[b'data: {"choices":[{"text":"a"}]}\n', b'data: {"choices":[{"text":"b"}]}\n'])
    make_client(session, ClosedSink()).run(RequestConfig(user_segments=["Hi"]))
    assert session.response.closed
    assert session.response.chunks_read == 1


def test_transport_error_propagates(make_session):
    session = make_session(status_code=500, text="boom")
    with pytest.raises(TransportError):
        make_client(session, io.StringIO()).run(RequestConfig(user_segments=["Hi"]))


def test_context_manager_closes_session(make_session):
    session = make_session()
    with make_client(session, io.StringIO()):
        pass
    assert session.closed


def test_echo_into_closed_sink_skips_request(make_session):
    session = make_session(chunks=[b'data: {"choices":[{"text":"a"}]}\n'])
    client = make_client(session, ClosedSink())
    config = RequestConfig(user_segments=["Hi"], echo_prompt=True)
    assert client.run(config) == ""
    assert client.response_handler.output_closed
    assert session.calls == []


def test_closed_sink_sets_output_closed(make_session):
    session = make_session(chunks=[b'data: {"choices":[{"text":"a"}]}\n'])
    client = make_client(session, ClosedSink())
    client.run(RequestConfig(user_segments=["Hi"]))
    assert client.response_handler.output_closed
