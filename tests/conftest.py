"""Shared fakes for the HTTP layer."""

import pytest
import requests


class FakeResponse:
    def __init__(self, chunks=(), status_code=200, text="", error=None):
        self.chunks = list(chunks)
        self.status_code = status_code
        self.text = text
        self.error = error
        self.closed = False
        self.chunks_read = 0

    @property
    def ok(self):
        return self.status_code < 400

    def iter_content(self, chunk_size=None):
        for chunk in self.chunks:
            self.chunks_read += 1
            yield chunk
        if self.error is not None:
            raise self.error

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.calls = []
        self.closed = False

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


@pytest.fixture
def make_session():
    def factory(chunks=(), status_code=200, text="", error=None, stream_error=None):
        response = FakeResponse(chunks, status_code=status_code, text=text, error=stream_error)
        return FakeSession(response, error=error)
    return factory


@pytest.fixture
def connection_error():
    return requests.exceptions.ConnectionError("connection refused")
