from hotseat import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    auth_provider = db.Column(db.String(32), nullable=False, default='email')
    # Invited users have no password until they register
    password_hash = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        if not self.password_hash:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'auth_provider': self.auth_provider,
            'created_at': _iso(self.created_at),
        }


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(128), unique=True, nullable=False, index=True)
    creator_id = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=False)
    # Only the turn tracker writes this column
    current_turn_id = db.Column(
        db.String(36),
        db.ForeignKey('player.id', name='fk_game_current_turn_id', use_alter=True),
        nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    players = db.relationship(
        'Player',
        foreign_keys='Player.game_id',
        back_populates='game',
        order_by='Player.turn_order',
        passive_deletes=True,
    )
    creator = db.relationship('User', foreign_keys=[creator_id])

    def to_dict(self, include_players=True):
        data = {
            'id': self.id,
            'name': self.name,
            'creator_id': self.creator_id,
            'current_turn_id': self.current_turn_id,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
        if include_players:
            data['players'] = [p.to_dict() for p in self.players]
        return data


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (
        db.UniqueConstraint('game_id', 'user_id', name='uq_player_game_user'),
    )
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=False, index=True)
    game_id = db.Column(db.String(36), db.ForeignKey('game.id'), nullable=False, index=True)
    turn_order = db.Column(db.Integer, nullable=False, default=0)

    user = db.relationship('User')
    game = db.relationship('Game', foreign_keys=[game_id], back_populates='players')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'game_id': self.game_id,
            'turn_order': self.turn_order,
            'email': self.user.email if self.user else None,
        }


class Save(db.Model):
    __tablename__ = 'save'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    game_id = db.Column(db.String(36), db.ForeignKey('game.id'), nullable=False, index=True)
    file_path = db.Column(db.String(512), nullable=False)
    uploaded_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    def to_dict(self):
        return {
            'save_id': self.id,
            'game_id': self.game_id,
            'file_path': self.file_path,
            'uploaded_by': self.uploaded_by,
            'created_at': _iso(self.created_at),
        }
