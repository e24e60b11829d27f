"""
tests/conftest.py
Shared fakes: event-stream bodies, mock upstream / relay transports.
"""

import json
from typing import Callable

import httpx
import pytest


def make_sse(*deltas: str, done: bool = True) -> bytes:
    lines = [
        f"data: {json.dumps({'choices': [{'delta': {'content': d}}]})}\n\n"
        for d in deltas
    ]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request):
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


@pytest.fixture
def sse():
    return make_sse


@pytest.fixture
def transport_factory():
    return RecordingTransport
