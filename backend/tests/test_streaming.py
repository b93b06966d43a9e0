import asyncio

from backoffice.api.streaming import sse_events
from backoffice.db import init_db
from backoffice.repositories.document_repo import watch
from backoffice.services.change_feed import change_feed


def setup_module(module):
    init_db(reset=True)


class _Client:
    """Request stand-in that reports a disconnect after ``polls`` checks."""

    def __init__(self, polls):
        self.polls = polls
        self.checks = 0

    async def is_disconnected(self):
        self.checks += 1
        return self.checks > self.polls


def _collect(events):
    async def run():
        return [chunk async for chunk in events]

    return asyncio.run(run())


def test_disconnected_client_closes_the_stream():
    stream = watch("menu")
    chunks = _collect(sse_events(stream, request=_Client(polls=0)))
    assert chunks == []
    assert stream.closed
    assert stream not in change_feed._subscribers["menu"]


def test_idle_polls_send_keepalives_until_disconnect():
    stream = watch("users")
    chunks = _collect(
        sse_events(stream, request=_Client(polls=2), keepalive_seconds=0.05, poll_seconds=0.05)
    )
    assert chunks == ["data: []\n\n", ": keepalive\n\n"]
    assert stream.closed


def test_limit_stops_after_n_snapshots():
    stream = watch("carts")
    chunks = _collect(sse_events(stream, limit=1, poll_seconds=0.05))
    assert len(chunks) == 1
    assert chunks[0].startswith("data: ")
    assert stream.closed
