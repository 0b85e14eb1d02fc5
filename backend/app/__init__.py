import random

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

socketio = SocketIO(async_mode=None)

def create_app(config_class=Config, question_supply=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One shared RNG; a fixed RANDOM_SEED makes shuffles and draws repeatable
    seed = flask_app.config.get('RANDOM_SEED')
    rng = random.Random(seed) if seed is not None else random.Random()

    from app.rooms import RoomRegistry
    from app.services.games import GameEngine
    from app.services.questions import QuestionSupply
    from app.socketio_events import RoomConnections, SocketPublisher, register_socketio_handlers

    supply = question_supply or QuestionSupply.from_config(flask_app.config, rng=rng)
    connections = RoomConnections()
    engine = GameEngine(RoomRegistry(rng=rng), supply, SocketPublisher(socketio, connections), rng=rng)
    flask_app.extensions['question_supply'] = supply
    flask_app.extensions['room_connections'] = connections
    flask_app.extensions['game_engine'] = engine
    if supply.generator is None:
        flask_app.logger.warning("GROQ_API_KEY not set, questions come from the local pools only")

    # Import and register blueprints here
    from app.main import main
    flask_app.register_blueprint(main)

    from app.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api')

    register_socketio_handlers()

    @click.command('questions-stats')
    def questions_stats_command():
        """Prints the sizes of the question pools and the ledger."""
        for key, value in supply.stats().items():
            click.echo(f'{key}: {value}')

    flask_app.cli.add_command(questions_stats_command)

    return flask_app
