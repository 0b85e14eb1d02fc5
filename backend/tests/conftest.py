import os
import sys
import random
import pytest

# Ensure the backend root (containing the `app` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from app import create_app, socketio
from app.rooms import RoomRegistry
from app.services.games import GameEngine
from app.services.questions import QuestionSupply


SEED_QUESTIONS = [
    "Who is the most likely to adopt ten cats?",
    "Who is the most likely to become a millionaire?",
    "Who is the most likely to survive a zombie apocalypse?",
    "Who is the most likely to write a bestselling novel?",
    "Who is the most likely to climb Mount Everest?",
    "Who is the most likely to win a cooking show?",
    "Who is the most likely to become a politician?",
    "Who is the most likely to move to another country?",
    "Who is the most likely to go viral online?",
]


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['http://localhost:3000']
    GROQ_API_KEY = None
    RANDOM_SEED = 1234


class RecordingPublisher:
    """Captures what the engine would send over the wire."""

    def __init__(self):
        self.states = []
        self.notifications = []

    def publish_state(self, room):
        self.states.append(room.to_dict())

    def notify(self, room, player, event, payload):
        self.notifications.append((room.id, player, event, payload))


class PickRandom(random.Random):
    """Seeded Random whose choice() prefers a fixed item when present."""

    def __init__(self, pick=None, seed=0):
        super().__init__(seed)
        self.pick = pick

    def choice(self, seq):
        if self.pick in seq:
            return self.pick
        return super().choice(seq)


@pytest.fixture()
def supply():
    return QuestionSupply(seed_pool=SEED_QUESTIONS, fallback=(), rng=random.Random(3))


@pytest.fixture()
def publisher():
    return RecordingPublisher()


@pytest.fixture()
def engine(supply, publisher):
    return GameEngine(RoomRegistry(rng=random.Random(5)), supply, publisher, rng=PickRandom(seed=11))


@pytest.fixture()
def flask_app():
    application = create_app(
        TestConfig,
        question_supply=QuestionSupply(seed_pool=SEED_QUESTIONS, rng=random.Random(9)),
    )
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def make():
        test_client = socketio.test_client(flask_app, namespace='/')
        clients.append(test_client)
        return test_client

    yield make
    for test_client in clients:
        try:
            if test_client.is_connected('/'):
                test_client.disconnect(namespace='/')
        except Exception:
            pass
