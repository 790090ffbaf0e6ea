import threading
import uuid
from collections import Counter
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import SQLAlchemyError

from hotseat import db
from hotseat.models import Game, Player, User
from hotseat.services.games.turns import advance_turn, next_player, NoPlayersError, TurnError


def test_next_player_wraps_around():
    players = [SimpleNamespace(id='a'), SimpleNamespace(id='b'), SimpleNamespace(id='c')]
    assert next_player(players, None).id == 'a'
    assert next_player(players, 'a').id == 'b'
    assert next_player(players, 'c').id == 'a'
    assert next_player(players, 'gone').id == 'a'


def test_next_player_single_player_keeps_turn():
    players = [SimpleNamespace(id='solo')]
    assert next_player(players, 'solo').id == 'solo'


def test_first_turn_goes_to_lowest_turn_order(flask_app, make_game, current_turn):
    game, users, players = make_game(turn_orders=[5, 2, 9])
    with flask_app.app_context():
        chosen = advance_turn(game.id)
        assert chosen.id == players[1].id
    assert current_turn(game.id) == players[1].id


def test_round_robin_visits_everyone_then_repeats(flask_app, make_game):
    emails = [f'rr{i}@example.com' for i in range(4)]
    game, users, players = make_game(emails=emails, turn_orders=[0, 3, 7, 8])
    with flask_app.app_context():
        visited = [advance_turn(game.id).id for _ in range(len(players))]
        assert visited == [p.id for p in players]
        # The (N+1)-th call starts the cycle again
        assert advance_turn(game.id).id == players[0].id


def test_unknown_current_turn_resets_to_first(flask_app, make_game, set_turn, current_turn):
    game, users, players = make_game()
    set_turn(game.id, str(uuid.uuid4()))
    with flask_app.app_context():
        assert advance_turn(game.id).id == players[0].id
    assert current_turn(game.id) == players[0].id


def test_no_players_raises_without_persisting(flask_app, make_game, current_turn, monkeypatch):
    game, users, players = make_game(with_players=False)
    commits = []
    monkeypatch.setattr(db.session, 'commit', lambda: commits.append(True))
    with flask_app.app_context():
        with pytest.raises(NoPlayersError):
            advance_turn(game.id)
    assert commits == []
    monkeypatch.undo()
    assert current_turn(game.id) is None


def test_persistence_failure_is_wrapped(flask_app, make_game, current_turn, monkeypatch):
    game, users, players = make_game()

    def boom():
        raise SQLAlchemyError('database is locked')

    monkeypatch.setattr(db.session, 'commit', boom)
    with flask_app.app_context():
        with pytest.raises(TurnError) as excinfo:
            advance_turn(game.id)
    assert game.id in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, SQLAlchemyError)
    monkeypatch.undo()
    assert current_turn(game.id) is None


def test_read_failure_is_wrapped_and_rolled_back(flask_app, make_game, monkeypatch):
    game, users, players = make_game()

    class DroppedConnection:
        def filter_by(self, **kwargs):
            raise SQLAlchemyError('connection reset')

    rollbacks = []
    real_rollback = db.session.rollback

    def tracking_rollback():
        rollbacks.append(True)
        real_rollback()

    with flask_app.app_context():
        monkeypatch.setattr(Player, 'query', DroppedConnection())
        monkeypatch.setattr(db.session, 'rollback', tracking_rollback)
        with pytest.raises(TurnError) as excinfo:
            advance_turn(game.id)
        assert game.id in str(excinfo.value)
        assert isinstance(excinfo.value.__cause__, SQLAlchemyError)
        assert rollbacks == [True]

        monkeypatch.undo()
        # The session is still usable for the steps that follow
        assert advance_turn(game.id).id == players[0].id


def test_unknown_game_has_no_players(flask_app):
    with flask_app.app_context():
        with pytest.raises(NoPlayersError):
            advance_turn(str(uuid.uuid4()))


def test_concurrent_advances_are_serialized_per_game(file_db_app):
    with file_db_app.app_context():
        users = [User(email=f'race{i}@example.com', auth_provider='google') for i in range(3)]
        db.session.add_all(users)
        db.session.flush()
        game = Game(name='Race', creator_id=users[0].id)
        db.session.add(game)
        db.session.flush()
        players = [Player(user_id=u.id, game_id=game.id, turn_order=i) for i, u in enumerate(users)]
        db.session.add_all(players)
        db.session.flush()
        game.current_turn_id = players[0].id
        db.session.commit()
        game_id = game.id
        order = [p.id for p in players]

    calls = 30
    chosen = []
    errors = []
    start = threading.Barrier(calls)

    def worker():
        with file_db_app.app_context():
            start.wait()
            try:
                chosen.append(advance_turn(game_id).id)
            except Exception as exc:  # pragma: no cover - reported below
                errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(calls)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert errors == []
    assert len(chosen) == calls
    # Starting from the first player, N advances land N positions further on
    with file_db_app.app_context():
        assert db.session.get(Game, game_id).current_turn_id == order[calls % len(order)]
    assert Counter(chosen) == {pid: calls // len(order) for pid in order}

