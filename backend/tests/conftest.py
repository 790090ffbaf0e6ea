import io
import os
import sys
import zipfile
import pytest

# Ensure the backend root (containing the `hotseat` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from hotseat import create_app, db, socketio
from hotseat.auth import issue_token
from hotseat.models import User, Game, Player
from hotseat.services.notifications import Notifier, NotificationError


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    JWT_SECRET = 'test_secret_key'
    JWT_EXPIRES_MIN = 5
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    FRONTEND_URL = 'http://localhost:3000'
    MAX_SAVE_SIZE_MB = 1
    ALLOWED_SAVE_EXTENSIONS = '.zip,.sav'
    UPLOAD_RATE_LIMIT = 0
    SSE_QUEUE_SIZE = 4
    SSE_KEEPALIVE_SEC = 1
    NOTIFIER = 'none'


class RecordingNotifier(Notifier):
    """Keeps every notification; fails for addresses listed in ``fail_for``."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()

    def notify(self, recipient, subject, body):
        if recipient in self.fail_for:
            raise NotificationError(f"mailbox unavailable: {recipient}")
        self.sent.append({'recipient': recipient, 'subject': subject, 'body': body})


def make_zip_bytes(name='dummy.txt', content=b'This is a dummy file.'):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, 'w') as zf:
        zf.writestr(name, content)
    return buf.getvalue()


def build_app(config_class, notifier=None):
    """Create an app with its schema in place. No app context is left pushed.

    Every test-client request then gets an app context (and ``g``) of its
    own, so the signed-in user never leaks from one request to the next.
    """
    application = create_app(config_class, notifier=notifier)
    with application.app_context():
        db.create_all()
    return application


def dispose_app(application):
    with application.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    application.extensions['hotseat.broadcaster'].close()


def _new_user(email):
    user = User(email=email, auth_provider='google')
    db.session.add(user)
    return user


def _loaded(*instances):
    # Touch the primary key so expired attributes are reloaded before the
    # session closes; the detached objects stay readable afterwards.
    for instance in instances:
        instance.id
    return instances


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def saves_dir(tmp_path):
    return str(tmp_path / 'saves')


@pytest.fixture()
def flask_app(saves_dir, notifier):
    config = type('SavesTestConfig', (TestConfig,), {'SAVES_DIR': saves_dir})
    application = build_app(config, notifier=notifier)
    yield application
    dispose_app(application)


@pytest.fixture()
def file_db_app(tmp_path):
    """App on an on-disk SQLite database, for tests that run threads."""
    config = type('FileDbTestConfig', (TestConfig,), {
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'hotseat.db'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'check_same_thread': False, 'timeout': 30}},
        'SAVES_DIR': str(tmp_path / 'saves'),
    })
    application = build_app(config)
    yield application
    dispose_app(application)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def broadcaster(flask_app):
    return flask_app.extensions['hotseat.broadcaster']


@pytest.fixture()
def sio_client(flask_app, client):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=client,
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def make_user(flask_app):
    def _make(email):
        with flask_app.app_context():
            user = _new_user(email)
            db.session.commit()
            _loaded(user)
        return user
    return _make


@pytest.fixture()
def auth_headers(flask_app):
    def _headers(user):
        with flask_app.app_context():
            token = issue_token(user)
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture()
def make_game(flask_app):
    """Create a game whose players join in the order of ``emails``.

    Returns detached ``(game, users, players)``; read ids and names from them
    and query fresh state through :func:`current_turn` or an app context.
    """
    def _make(name='Test Game', emails=('p1@example.com', 'p2@example.com', 'p3@example.com'),
              turn_orders=None, with_players=True):
        with flask_app.app_context():
            users = [_new_user(email) for email in emails]
            db.session.flush()
            game = Game(name=name, creator_id=users[0].id)
            db.session.add(game)
            db.session.flush()
            players = []
            if with_players:
                for idx, user in enumerate(users):
                    order = turn_orders[idx] if turn_orders is not None else idx
                    player = Player(user_id=user.id, game_id=game.id, turn_order=order)
                    db.session.add(player)
                    players.append(player)
            db.session.commit()
            _loaded(game, *users, *players)
        return game, users, players
    return _make


@pytest.fixture()
def current_turn(flask_app):
    def _current(game_id):
        with flask_app.app_context():
            return db.session.get(Game, game_id).current_turn_id
    return _current


@pytest.fixture()
def set_turn(flask_app):
    def _set(game_id, player_id):
        with flask_app.app_context():
            db.session.get(Game, game_id).current_turn_id = player_id
            db.session.commit()
    return _set


@pytest.fixture()
def upload_file(client):
    def _upload(game_id, headers, content=None, filename='test.zip'):
        if content is None:
            content = make_zip_bytes()
        return client.post(
            f'/api/games/{game_id}/saves',
            data={'file': (io.BytesIO(content), filename)},
            headers=headers,
            content_type='multipart/form-data',
        )
    return _upload


@pytest.fixture()
def make_zip():
    return make_zip_bytes
