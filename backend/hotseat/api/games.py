from flask import Blueprint, jsonify, request, current_app, send_file
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError
from hotseat import db
from hotseat.errors import NotFound, Forbidden, Gone, Conflict, BadRequest, TooManyRequests, ApiError
from hotseat.models import Game, Player, Save
from hotseat.services.games.roster import add_player, find_or_invite_user, membership
from hotseat.services.games.turns import forget_game
from hotseat.services.games.uploads import upload_save, publish
from hotseat.services.storage import remove_file
from collections import deque
from typing import Deque, Dict
import os
import threading
import time
import uuid


games = Blueprint('games', __name__)

UPLOAD_WINDOW_SEC = 60

# Per-user timestamps of accepted uploads (runtime-only). Users with no
# upload inside the window have no entry.
_recent_uploads: Dict[str, Deque[float]] = {}
_recent_uploads_lock = threading.Lock()
_clock = time.monotonic

BROADCAST_EVENT = 'broadcast'


def _broadcaster():
    return current_app.extensions['hotseat.broadcaster']


def _notifier():
    return current_app.extensions['hotseat.notifier']


def _parse_game_id(raw: str) -> str:
    try:
        return str(uuid.UUID(raw))
    except ValueError:
        raise NotFound('game not found')


def _get_game_or_404(game_id: str) -> Game:
    game = Game.query.filter_by(id=_parse_game_id(game_id)).first()
    if game is None:
        raise NotFound('game not found')
    return game


def _require_member(game: Game) -> Player:
    player = membership(current_user.id, game.id)
    if player is None:
        raise Forbidden('not a member of this game')
    return player


def _upload_limit() -> int:
    return int(current_app.config.get('UPLOAD_RATE_LIMIT', 0))


def _check_upload_rate(user_id: str) -> None:
    """Raise TooManyRequests if the user already used up the window.

    Only looks; rejected uploads never count against the limit.
    """
    limit = _upload_limit()
    if limit <= 0:
        return
    now = _clock()
    with _recent_uploads_lock:
        window = _recent_uploads.get(user_id)
        if window is None:
            return
        while window and now - window[0] >= UPLOAD_WINDOW_SEC:
            window.popleft()
        if not window:
            del _recent_uploads[user_id]
            return
        if len(window) >= limit:
            raise TooManyRequests()


def _record_upload(user_id: str) -> None:
    if _upload_limit() <= 0:
        return
    with _recent_uploads_lock:
        _recent_uploads.setdefault(user_id, deque()).append(_clock())


@games.route('/create', methods=['POST'])
@login_required
def create_game():
    """Create a game with the caller as first player, inviting others by email."""
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'name is required'}), 400
    invited = data.get('players') or []
    if not isinstance(invited, list):
        return jsonify({'error': 'players must be a list of emails'}), 400

    if Game.query.filter_by(name=name).first():
        return jsonify({'error': 'A game with this name already exists.'}), 400

    game = Game(name=name, creator_id=current_user.id)
    db.session.add(game)
    db.session.flush()
    add_player(game.id, current_user.id)

    seen = {current_user.email}
    for email in invited:
        if not isinstance(email, str) or not email.strip():
            continue
        email = email.strip().lower()
        if email in seen:
            continue
        seen.add(email)
        user = find_or_invite_user(email)
        if membership(user.id, game.id) is None:
            add_player(game.id, user.id)

    db.session.commit()
    current_app.logger.info(f"[game] created game={game.id} name={name!r} players={len(game.players)}")
    return jsonify({'message': 'Game created', 'game_id': game.id, 'game': game.to_dict()}), 201


@games.route('/<string:game_id>/join', methods=['POST'])
@login_required
def join_game(game_id):
    game = _get_game_or_404(game_id)
    if membership(current_user.id, game.id):
        raise Conflict('already a participant')

    player = add_player(game.id, current_user.id)
    db.session.commit()
    return jsonify({'message': 'Joined game', 'player_id': player.id, 'turn_order': player.turn_order}), 200


@games.route('/<string:game_id>', methods=['GET'])
@login_required
def get_game(game_id):
    game = _get_game_or_404(game_id)
    return jsonify(game.to_dict())


@games.route('/<string:game_id>', methods=['DELETE'])
@login_required
def delete_game(game_id):
    """Delete a game with its players and saves. Creator only."""
    game = _get_game_or_404(game_id)
    if game.creator_id != current_user.id:
        raise Forbidden('only the creator can delete this game')

    gid = game.id
    paths = [s.file_path for s in Save.query.filter_by(game_id=gid).all()]
    try:
        # Break FK from game to player before removing players
        game.current_turn_id = None
        db.session.flush()
        Save.query.filter_by(game_id=gid).delete()
        Player.query.filter_by(game_id=gid).delete()
        db.session.delete(game)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"[game] failed to delete game={gid}")
        raise ApiError('failed to delete game')

    forget_game(gid)
    for path in paths:
        if not remove_file(path):
            current_app.logger.warning(f"[game] game={gid} failed to delete save file {path}")
    game_dir = os.path.join(current_app.config.get('SAVES_DIR', 'saves'), gid)
    try:
        os.rmdir(game_dir)
    except OSError:
        pass
    current_app.logger.info(f"[game] deleted game={gid} saves={len(paths)}")
    return jsonify({'message': 'game deleted successfully'})


@games.route('/<string:game_id>/saves', methods=['POST'])
@login_required
def upload(game_id):
    gid = _parse_game_id(game_id)
    _check_upload_rate(current_user.id)
    save = upload_save(
        gid,
        current_user,
        request.files.get('file'),
        broadcaster=_broadcaster(),
        notifier=_notifier(),
    )
    _record_upload(current_user.id)
    payload = save.to_dict()
    payload['message'] = 'save uploaded successfully'
    return jsonify(payload), 201


@games.route('/<string:game_id>/saves/latest', methods=['GET'])
@login_required
def latest_save(game_id):
    game = _get_game_or_404(game_id)
    _require_member(game)

    save = (
        Save.query.filter_by(game_id=game.id)
        .order_by(Save.created_at.desc())
        .first()
    )
    if save is None:
        raise NotFound('no saves found')
    if not os.path.isfile(save.file_path):
        current_app.logger.warning(f"[save] game={game.id} save={save.id} file missing on disk")
        raise Gone('save file has been removed')

    return send_file(
        os.path.abspath(save.file_path),
        mimetype='application/octet-stream',
        as_attachment=True,
        download_name=f"{game.id}_latest.zip",
        conditional=True,
        etag=True,
        last_modified=os.path.getmtime(save.file_path),
    )


@games.route('/<string:game_id>/messages', methods=['POST'])
@login_required
def post_message(game_id):
    game = _get_game_or_404(game_id)
    _require_member(game)
    data = request.get_json(silent=True) or {}
    message = data.get('message')
    if not isinstance(message, str) or not message.strip():
        raise BadRequest('message is required')

    publish(_broadcaster(), BROADCAST_EVENT, f"{current_user.email}: {message}", game_id=game.id)
    return jsonify({'message': 'message sent'}), 202
