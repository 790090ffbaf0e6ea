import queue

from flask import Blueprint, Response, current_app, stream_with_context

events = Blueprint('events', __name__)

KEEPALIVE = ': keepalive\n\n'
CONNECTED = ': connected\n\n'


def stream_events(broadcaster, keepalive_sec: float):
    """Yield framed events for one live connection until it goes away.

    The subscriber is registered on the first iteration and unregistered
    however the stream ends: the broadcaster closing it, or the server
    closing the generator after a failed write to a disconnected client.
    """
    subscriber = broadcaster.register()
    try:
        yield CONNECTED
        while True:
            try:
                message = subscriber.get(timeout=keepalive_sec)
            except queue.Empty:
                yield KEEPALIVE
                continue
            if message is None:
                return
            yield message
    finally:
        broadcaster.unregister(subscriber)


@events.route('/sse/notifications')
def notifications():
    broadcaster = current_app.extensions['hotseat.broadcaster']
    keepalive = float(current_app.config.get('SSE_KEEPALIVE_SEC', 15))
    headers = {
        'Cache-Control': 'no-cache',
        'X-Accel-Buffering': 'no',
    }
    return Response(
        stream_with_context(stream_events(broadcaster, keepalive)),
        mimetype='text/event-stream',
        headers=headers,
    )
