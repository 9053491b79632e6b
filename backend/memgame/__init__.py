from flask import Flask, current_app, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
import click
from config import Config
from memgame.services.game import GameEngine

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()


def create_app(config_class=Config, **engine_overrides):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=flask_app.config.get('CORS_ORIGINS') or [])

    # One engine per app, reachable as app.extensions['memgame'];
    # tests inject clock/rng/counter_store here
    GameEngine(flask_app, **engine_overrides)

    from memgame.main import main
    flask_app.register_blueprint(main)

    from memgame.api.game import game
    flask_app.register_blueprint(game, url_prefix='/api/game')

    # Identity comes from the upstream provider's header; nothing is
    # verified here beyond presence
    from memgame.models import PlayerIdentity

    @login_manager.request_loader
    def load_player_from_request(req):
        header = current_app.config.get('PLAYER_ID_HEADER', 'X-Player-Id')
        player_id = (req.headers.get(header) or '').strip()
        if not player_id or len(player_id) > 64:
            return None
        return PlayerIdentity(player_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Missing player identity', 'code': 'Unauthorized'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the token tables."""
        import memgame.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            click.echo('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
