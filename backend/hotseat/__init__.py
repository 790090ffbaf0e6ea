from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config, notifier=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = [o.strip() for o in str(flask_app.config.get('FRONTEND_URL', '')).split(',') if o.strip()]

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One broadcaster and one notifier per app; handlers reach them through
    # app.extensions and pass them on explicitly.
    from hotseat.broadcast import EventBroadcaster
    from hotseat.services.notifications import build_notifier
    flask_app.extensions['hotseat.broadcaster'] = EventBroadcaster(
        queue_size=int(flask_app.config.get('SSE_QUEUE_SIZE', 32))
    )
    flask_app.extensions['hotseat.notifier'] = notifier or build_notifier(flask_app.config)

    from hotseat.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Import and register blueprints here
    from hotseat.main import main
    flask_app.register_blueprint(main)

    from hotseat.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from hotseat.api.events import events
    flask_app.register_blueprint(events)

    from hotseat.socketio_events import register_socketio_handlers
    register_socketio_handlers(socketio, testing=flask_app.config.get('TESTING', False))

    # Flask-Login: cookie sessions and bearer tokens
    from hotseat.models import User
    from hotseat.auth import load_user_from_request, unauthorized

    @login_manager.user_loader
    def load_user(user_id):
        return User.query.filter_by(id=user_id).first()

    login_manager.request_loader(load_user_from_request)
    login_manager.unauthorized_handler(unauthorized)

    @click.command('db-reset')
    @click.option('--game', 'game_name', default='Demo Campaign', show_default=True,
                  help='Name of the seeded game.')
    def db_reset_command(game_name):
        """Drop and recreate the schema, then seed three players sharing one game."""
        from hotseat.models import Game
        from hotseat.services.games.roster import add_player

        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            seeded = []
            for n in range(1, 4):
                player = User(email=f'player{n}@example.com', auth_provider='password')
                player.set_password('password')
                db.session.add(player)
                seeded.append(player)
            db.session.flush()

            game = Game(name=game_name, creator_id=seeded[0].id)
            db.session.add(game)
            db.session.flush()
            for player in seeded:
                add_player(game.id, player.id)

            db.session.commit()
            click.echo(f"Seeded {len(seeded)} players in game {game_name!r} ({game.id})")

    flask_app.cli.add_command(db_reset_command)

    return flask_app
