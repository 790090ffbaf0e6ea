import threading
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from hotseat import db
from hotseat.models import Game, Player


class TurnError(Exception):
    pass


class NoPlayersError(TurnError):
    pass


_game_locks: Dict[str, threading.Lock] = {}
_game_locks_guard = threading.Lock()


def _lock_for(game_id: str) -> threading.Lock:
    with _game_locks_guard:
        lock = _game_locks.get(game_id)
        if lock is None:
            lock = _game_locks[game_id] = threading.Lock()
        return lock


def forget_game(game_id: str) -> None:
    """Release the turn lock of a deleted game."""
    with _game_locks_guard:
        _game_locks.pop(game_id, None)


def next_player(players: List[Player], current_turn_id: Optional[str]) -> Player:
    """Pick who moves after ``current_turn_id``.

    ``players`` must already be sorted by turn_order. An unset or unknown
    current turn falls back to the first player; the last player wraps
    around to the first.
    """
    if not players:
        raise NoPlayersError('no players')
    if current_turn_id is None:
        return players[0]
    for idx, player in enumerate(players):
        if player.id == current_turn_id:
            return players[(idx + 1) % len(players)]
    return players[0]


def advance_turn(game_id: str) -> Player:
    """Move the game's turn pointer to the next player and persist it.

    Serialized per game so concurrent uploads cannot both read the same
    current turn. Call once per successful upload. Any database error, on
    read or write, rolls the session back and surfaces as ``TurnError``.
    """
    with _lock_for(game_id):
        try:
            players = (
                Player.query.filter_by(game_id=game_id)
                .order_by(Player.turn_order.asc())
                .all()
            )
            if not players:
                raise NoPlayersError(f"no players found for game {game_id}")

            game = Game.query.filter_by(id=game_id).with_for_update().first()
            if game is None:
                raise TurnError(f"game {game_id} not found")

            chosen = next_player(players, game.current_turn_id)
            game.current_turn_id = chosen.id
            db.session.add(game)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TurnError(f"failed to update current turn for game {game_id}") from exc
        return chosen
