from flask_socketio import join_room, leave_room, emit
from flask import request, current_app
from hotseat.models import Game
from typing import Dict, Set
import threading
import uuid

WS_NAMESPACE = '/ws'

# sid -> game ids joined on that socket
_sid_rooms: Dict[str, Set[str]] = {}
_sid_rooms_lock = threading.Lock()


def game_room(game_id: str) -> str:
    return f"game:{game_id}"


def _get_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def _game_id_from(data):
    raw = (data or {}).get('game_id')
    if not raw:
        return None
    try:
        return str(uuid.UUID(str(raw)))
    except ValueError:
        return None


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    with _sid_rooms_lock:
        joined = _sid_rooms.pop(_get_sid(), set())
    if joined:
        current_app.logger.info(f"[ws] sid={_get_sid()} left rooms={sorted(joined)} on disconnect")


def handle_join_game(data):
    game_id = _game_id_from(data)
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    if not Game.query.filter_by(id=game_id).first():
        emit('error', {'message': 'game not found'})
        return
    room = game_room(game_id)
    join_room(room)
    with _sid_rooms_lock:
        _sid_rooms.setdefault(_get_sid(), set()).add(game_id)
    emit('joined', {'room': room})


def handle_leave_game(data):
    game_id = _game_id_from(data)
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    room = game_room(game_id)
    leave_room(room)
    with _sid_rooms_lock:
        joined = _sid_rooms.get(_get_sid())
        if joined is not None:
            joined.discard(game_id)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(socketio, testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [WS_NAMESPACE, '/'] if testing else [WS_NAMESPACE]
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_game', handle_join_game, namespace=namespace)
        socketio.on_event('leave_game', handle_leave_game, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
