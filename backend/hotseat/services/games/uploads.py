"""Save upload orchestration.

Only storing the file and its row can fail an upload. Once the save row is
committed, turn advancement, player notifications and the live broadcast are
attempted in that order and their failures are logged, never raised.
"""
from typing import List, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from hotseat import db, socketio
from hotseat.errors import NotFound, Forbidden, StorageError
from hotseat.models import Game, Player, Save
from hotseat.services.storage import parse_extensions, validate_upload, store_unique, remove_file
from hotseat.socketio_events import game_room
from .roster import is_member
from .turns import advance_turn

NEW_SAVE_EVENT = 'new_save'

Notification = Tuple[str, str, str]


def upload_save(game_id: str, uploader, upload, broadcaster, notifier) -> Save:
    app = current_app._get_current_object()
    cfg = app.config

    game = Game.query.filter_by(id=game_id).first()
    if game is None:
        raise NotFound('game not found')
    if not is_member(uploader.id, game.id):
        raise Forbidden('not a member of this game')
    game_name = game.name

    filename = validate_upload(
        upload,
        max_bytes=int(cfg.get('MAX_SAVE_SIZE_MB', 100)) * 1024 * 1024,
        allowed_extensions=parse_extensions(cfg.get('ALLOWED_SAVE_EXTENSIONS', '.zip,.sav')),
    )

    try:
        path = store_unique(cfg.get('SAVES_DIR', 'saves'), game_id, filename, upload)
    except StorageError:
        app.logger.exception(f"[upload] game={game_id} failed to write save file")
        raise

    save = Save(game_id=game_id, file_path=path, uploaded_by=uploader.id)
    try:
        db.session.add(save)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        app.logger.exception(f"[upload] game={game_id} failed to record save")
        if not remove_file(path):
            app.logger.error(f"[upload] game={game_id} could not remove orphaned file {path}")
        raise StorageError('failed to save file record')
    app.logger.info(f"[upload] game={game_id} save={save.id} by={uploader.id}")

    next_up = None
    try:
        next_up = advance_turn(game_id)
        app.logger.info(f"[turn] game={game_id} current_turn={next_up.id}")
    except Exception as exc:
        app.logger.warning(f"[turn] game={game_id} failed to advance turn: {exc}")

    try:
        messages = _build_notifications(game_id, game_name, uploader.id, next_up)
        _dispatch_notifications(app, notifier, messages)
    except Exception as exc:
        app.logger.warning(f"[notify] game={game_id} failed to queue notifications: {exc}")

    publish(broadcaster, NEW_SAVE_EVENT, {
        'game_id': game_id,
        'message': f"New save uploaded for game {game_name}!",
    }, game_id=game_id)
    return save


def publish(broadcaster, event_type: str, payload, game_id: str) -> None:
    """Send an event on the global stream and mirror it to the game's room."""
    try:
        broadcaster.broadcast(event_type, payload)
    except Exception as exc:
        current_app.logger.warning(f"[sse] game={game_id} broadcast of {event_type} failed: {exc}")
    try:
        socketio.emit(event_type, payload, to=game_room(game_id), namespace='/ws')
    except Exception as exc:
        current_app.logger.warning(f"[ws] game={game_id} emit of {event_type} failed: {exc}")


def _build_notifications(game_id: str, game_name: str, uploader_id: str, next_up: Optional[Player]) -> List[Notification]:
    others = (
        Player.query.filter(Player.game_id == game_id, Player.user_id != uploader_id)
        .order_by(Player.turn_order.asc())
        .all()
    )
    subject = f"New save uploaded for game {game_name}!"
    next_email = next_up.user.email if next_up is not None and next_up.user else None
    messages = []
    for player in others:
        email = player.user.email if player.user else None
        if not email:
            continue
        if next_up is not None and player.id == next_up.id:
            body = f"A new save has been uploaded for {game_name}. It's now your turn!"
        elif next_email:
            body = f"A new save has been uploaded for {game_name}. It's now {next_email}'s turn."
        else:
            body = f"A new save has been uploaded for {game_name}."
        messages.append((email, subject, body))
    return messages


def _dispatch_notifications(app, notifier, messages: List[Notification]) -> None:
    if not messages:
        return
    if app.config.get('TESTING'):
        deliver_notifications(app, notifier, messages)
    else:
        socketio.start_background_task(deliver_notifications, app, notifier, messages)


def deliver_notifications(app, notifier, messages: List[Notification]) -> int:
    """Send each message independently. Returns how many went out."""
    sent = 0
    for recipient, subject, body in messages:
        try:
            notifier.notify(recipient, subject, body)
            sent += 1
        except Exception as exc:
            app.logger.warning(f"[notify] failed to send to {recipient}: {exc}")
    return sent
