import json
from typing import AsyncIterator, Optional

from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse

from backoffice.services.change_feed import SnapshotStream

KEEPALIVE_SECONDS = 15.0
POLL_SECONDS = 1.0


async def sse_events(
    stream: SnapshotStream,
    request: Optional[Request] = None,
    limit: Optional[int] = None,
    keepalive_seconds: float = KEEPALIVE_SECONDS,
    poll_seconds: float = POLL_SECONDS,
) -> AsyncIterator[str]:
    """
    Render snapshots as Server-Sent Events; stops after ``limit`` snapshots if given.

    Each wait for the next snapshot is bounded by ``poll_seconds`` so a worker
    thread is only borrowed briefly and a disconnected client is noticed on
    the next poll. The stream is closed when the generator ends.
    """
    sent = 0
    idle = 0.0
    try:
        while limit is None or sent < limit:
            if request is not None and await request.is_disconnected():
                break
            snapshot = await run_in_threadpool(stream.next_snapshot, poll_seconds)
            if stream.closed:
                break
            if snapshot is None:
                idle += poll_seconds
                if idle >= keepalive_seconds:
                    idle = 0.0
                    yield ": keepalive\n\n"
                continue
            idle = 0.0
            yield f"data: {json.dumps(snapshot, default=str)}\n\n"
            sent += 1
    finally:
        stream.close()


def snapshot_response(
    stream: SnapshotStream,
    request: Optional[Request] = None,
    limit: Optional[int] = None,
) -> StreamingResponse:
    return StreamingResponse(
        sse_events(stream, request=request, limit=limit),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
