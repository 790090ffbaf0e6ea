from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from .models import db, User, Game, Player
from .auth import issue_token

main = Blueprint('main', __name__)


def _credentials():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    return email, password


@main.route('/auth/register', methods=['POST'])
def register():
    email, password = _credentials()
    if not email or not password:
        return jsonify({'error': 'email and password are required'}), 400

    user = User.query.filter_by(email=email).first()
    if user and user.password_hash:
        return jsonify({'error': 'Email already registered'}), 400
    if user is None:
        user = User(email=email, auth_provider='password')
        db.session.add(user)
    else:
        # Invited players claim their account by registering
        user.auth_provider = 'password'
    user.set_password(password)
    db.session.commit()
    login_user(user)
    return jsonify({'user': user.to_dict(), 'token': issue_token(user)}), 201


@main.route('/auth/login', methods=['POST'])
def login():
    email, password = _credentials()
    user = User.query.filter_by(email=email).first()
    if user and user.check_password(password):
        login_user(user, remember=True)
        return jsonify({'user': user.to_dict(), 'token': issue_token(user)})
    return jsonify({'error': 'Invalid email or password'}), 401


@main.route('/auth/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out successfully.'})


@main.route('/auth/me')
@login_required
def me():
    return jsonify({'user': current_user.to_dict()})


@main.route('/api/user/games')
@login_required
def get_user_games():
    # Games where the current user is a player
    games = (
        Game.query.join(Player, Player.game_id == Game.id)
        .filter(Player.user_id == current_user.id)
        .order_by(Game.created_at.desc())
        .all()
    )
    return jsonify([game.to_dict(include_players=False) for game in games])
