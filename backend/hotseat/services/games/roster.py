from typing import Optional

from sqlalchemy import func

from hotseat import db
from hotseat.models import Player, User


def is_member(user_id: str, game_id: str) -> bool:
    return membership(user_id, game_id) is not None


def membership(user_id: str, game_id: str) -> Optional[Player]:
    return Player.query.filter_by(user_id=user_id, game_id=game_id).first()


def next_turn_order(game_id: str) -> int:
    current_max = (
        db.session.query(func.coalesce(func.max(Player.turn_order), -1))
        .filter(Player.game_id == game_id)
        .scalar()
    )
    return int(current_max) + 1


def add_player(game_id: str, user_id: str) -> Player:
    """Append a user to the end of the game's turn order. Caller commits."""
    player = Player(user_id=user_id, game_id=game_id, turn_order=next_turn_order(game_id))
    db.session.add(player)
    db.session.flush()
    return player


def find_or_invite_user(email: str) -> User:
    """Look a user up by email, creating a password-less account if needed."""
    email = email.strip().lower()
    user = User.query.filter_by(email=email).first()
    if user is None:
        user = User(email=email, auth_provider='email')
        db.session.add(user)
        db.session.flush()
    return user
